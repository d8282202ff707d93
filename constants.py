"""Constants for the home control server."""

# Default configuration paths
DEFAULT_CONFIG_FILE = "homecontrol.yaml"
DEFAULT_STATE_FILE = "homecontrol-state.json"

# Network
DEFAULT_SERVER_HOST = "0.0.0.0"
DEFAULT_SERVER_PORT = 8001
CONTROL_PATH = "/control"

# Philips Hue bridge
HUE_IDENTIFIER_APP = "home-control-hq"
HUE_IDENTIFIER_DEVICE = "home-control-hq-server"
HUE_DISCOVERY_URL = "https://discovery.meethue.com/"
HUE_GROUP_TYPES = ("LightGroup", "Room", "Zone")
HUE_SCENE_TYPE = "GroupScene"
HUE_MAX_BRIGHTNESS = 254
HUE_ERROR_UNAUTHORIZED = 1

# Light model used for colour conversion when a group has no known lights (gamut C)
HUE_DEFAULT_MODEL = "LCT010"

# Timeouts (seconds)
HUE_REQUEST_TIMEOUT = 10.0
HUE_DISCOVERY_TIMEOUT = 20.0
HUE_LINK_TIMEOUT = 10.0
HUE_LINK_ATTEMPTS = 5

# Routine intervals (seconds)
SYNC_INTERVAL = 10
MAXIMUM_INTERVAL_SECONDS = 86400

# Command identifiers of the Hue service
CMD_POWER = "power"
CMD_BRIGHTNESS = "brightness"
CMD_COLOUR = "colour"
CMD_SCENE = "scene"
CMD_STATE = "state"
CMD_GROUPS = "groups"
CMD_SERVICE_COMMANDS = "service-commands"

# Command identifiers handled by the server itself
CMD_HELLO = "hello"
CMD_ENVIRONMENT_ROOM_LIST = "environment-room-list"
CMD_ENVIRONMENT_SERVICE_LIST = "environment-service-list"
