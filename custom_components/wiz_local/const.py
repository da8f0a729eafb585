"""Constants for the WiZ Local integration."""

DOMAIN = "wiz_local"
MANUFACTURER = "WiZ"

# WiZ bulbs answer getPilot/setPilot on this UDP port
WIZ_PORT = 38899

METHOD_GET_PILOT = "getPilot"
METHOD_SET_PILOT = "setPilot"

# Seconds. Discovery probes many candidates at once so it can be short.
DEFAULT_DISCOVERY_TIMEOUT = 1.0
DEFAULT_REQUEST_TIMEOUT = 2.0

# Device color temperature range (Kelvin)
COLOR_TEMP_KELVIN_MIN = 2700
COLOR_TEMP_KELVIN_MAX = 6500

# User-facing temperature unit range (warm end is the high value)
COLOR_TEMP_UNIT_MIN = 140
COLOR_TEMP_UNIT_MAX = 500

# WiZ dimming is a percentage, the firmware refuses values below 10
DIMMING_MIN = 10
DIMMING_MAX = 100

# Refuse to sweep networks larger than a /24
MAX_SUBNET_HOSTS = 254

# Each probe holds one UDP socket; stay well under the usual 1024 descriptor limit
MAX_CONCURRENT_PROBES = 256

ARP_TABLE_PATH = "/proc/net/arp"

CONF_HOSTS = "hosts"
CONF_SUBNET = "subnet"
CONF_USE_ARP = "use_arp"
CONF_DISCOVERY_TIMEOUT = "discovery_timeout"
CONF_REQUEST_TIMEOUT = "request_timeout"
CONF_SCAN_INTERVAL = "scan_interval"

DEFAULT_SCAN_INTERVAL = 30
