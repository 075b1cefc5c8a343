"""Constants for the Bodima reservation API."""

RESERVATIONS_ENDPOINT = "/reservations"
RESERVATION_ENDPOINT = "/reservations/{reservation_id}"
CONFIRM_ENDPOINT = "/reservations/{reservation_id}/confirm"
CHECK_EXPIRATION_ENDPOINT = "/reservations/{reservation_id}/check-expiration"
CHECK_AVAILABILITY_ENDPOINT = "/reservations/check-availability"
RESERVED_DATES_ENDPOINT = "/reservations/habitation/{habitation_id}/reserved-dates"
HABITATION_AVAILABILITY_ENDPOINT = "/reservations/habitation/{habitation_id}/availability"

AUTH_HEADER = "Authorization"
AUTH_PREFIX = "Bearer "

DEFAULT_HEADERS = {
    "Accept": "application/json",
    "User-Agent": "pybodima",
}
