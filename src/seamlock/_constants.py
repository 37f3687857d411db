"""Internal constants shared across the library."""

BASE_URL = "https://connect.getseam.com"
API_VERSION = "1.0.0"
USER_AGENT = "seamlock"

DEFAULT_POLLING_INTERVAL: float = 60.0
DEFAULT_WEBHOOK_PORT = 8080

#: Timeout for a single status read (seconds).
STATUS_TIMEOUT: float = 5.0
#: Timeout for a lock/unlock command (seconds).
COMMAND_TIMEOUT: float = 15.0
#: How long a device stays command-owned after a successful command, while
#: the lock hardware settles and a poll could still read a stale value.
COMMAND_SETTLE_DELAY: float = 2.0

LOW_BATTERY_THRESHOLD = 20

# ------------------------------------------------------------------
# Webhook event types
# ------------------------------------------------------------------

EVENT_LOCK_LOCKED = "lock.locked"
EVENT_LOCK_UNLOCKED = "lock.unlocked"
EVENT_LOCK_ACCESS_DENIED = "lock.access_denied"
EVENT_DEVICE_CONNECTED = "device.connected"
EVENT_DEVICE_DISCONNECTED = "device.disconnected"
EVENT_DEVICE_LOW_BATTERY = "device.low_battery"
EVENT_DEVICE_BATTERY_STATUS_CHANGED = "device.battery_status_changed"
EVENT_DEVICE_DOOR_OPENED = "device.door_opened"
EVENT_DEVICE_DOOR_CLOSED = "device.door_closed"
EVENT_DEVICE_TAMPERED = "device.tampered"

#: Subscribed for every configuration.
BASE_EVENT_TYPES: tuple[str, ...] = (
    EVENT_DEVICE_CONNECTED,
    EVENT_DEVICE_DISCONNECTED,
    EVENT_LOCK_LOCKED,
    EVENT_LOCK_UNLOCKED,
    EVENT_DEVICE_LOW_BATTERY,
    EVENT_DEVICE_BATTERY_STATUS_CHANGED,
)

#: Only subscribed when at least one device has a door sensor.
DOOR_EVENT_TYPES: tuple[str, ...] = (
    EVENT_DEVICE_DOOR_OPENED,
    EVENT_DEVICE_DOOR_CLOSED,
)

#: Fallback set used when the provider rejects an event type.
CORE_EVENT_TYPES: tuple[str, ...] = (
    EVENT_LOCK_LOCKED,
    EVENT_LOCK_UNLOCKED,
    EVENT_DEVICE_CONNECTED,
    EVENT_DEVICE_DISCONNECTED,
)

SIGNATURE_HEADERS: tuple[str, ...] = ("x-seam-signature", "x-hub-signature-256")
