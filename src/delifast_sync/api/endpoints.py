"""Delifast API endpoint paths (relative to the configured base URL)."""

LOGIN = "/Login/Login"
CREATE_SHIPMENT = "/Customer/WooCommerceCreateShipment"
GET_STATUS = "/Customer/WooCommerceShipmentstatue"
LOOKUP_BY_ORDER_NUMBER = "/Customer/LookupOrderShipments"
LOOKUP_SHIPMENT = "/Customer/LookupShipmentByOrderNumber"
GET_CITIES = "/Customer/GetCities"
GET_AREAS = "/Customer/GetAreas"
CANCEL_SHIPMENT = "/Customer/CancelShipment"
GET_PAYMENT_METHODS = "/Customer/GetPaymentMethods"
