"""Constants for hold notifications."""

REMINDER_IDENTIFIER = "payment_reminder"
EXPIRY_IDENTIFIER = "reservation_expired"
CALENDAR_KEY = "calendar_hold"

ALERT_COPY_FILENAME = "alerts.json"
ALERT_SCHEMA_FILENAME = "alerts.schema.json"
