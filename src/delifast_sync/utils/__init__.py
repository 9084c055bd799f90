"""Utilities - Pure mapping tables for cities and statuses."""
