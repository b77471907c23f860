"""
Configuration constants for the arena collector robot.

All fixed hardware and calibration values in one place.
Runtime-tunable values live in params.py.
"""

# =============================================================================
# HARDWARE PORTS
# =============================================================================

# Driver board (motor, steering servo, grabber, IMU)
DRIVER_PORT = "/dev/ttyUSB0"
DRIVER_BAUDRATE = 115200

# Radio bridge to the game controller
RADIO_PORT = "/dev/ttyUSB1"
RADIO_BAUDRATE = 115200

# Camera
CAMERA_INDEX = 0

# =============================================================================
# SCREEN GEOMETRY
# =============================================================================

SCREEN_WIDTH = 320  # pixels
SCREEN_HEIGHT = 240  # pixels
CAMERA_FOV = 52.0  # degrees, horizontal (±26)
SCREEN_TOLERANCE_X = 10  # pixels around centre counted as "middle"

# Point-like objects are measured from an origin below the screen centre,
# which compensates the downward camera tilt.
BALL_ORIGIN_X = SCREEN_WIDTH / 2
BALL_ORIGIN_Y = 200

# Size-calibrated objects: (box diagonal in pixels, distance in cm)
MARKER_REFERENCES = ((85.0, 50.0), (42.0, 100.0))
PEER_REFERENCES = ((120.0, 50.0), (60.0, 100.0))

# =============================================================================
# MARKER IDS (as learned by the detector)
# =============================================================================

MARKER_EAST = 1
MARKER_SOUTH = 2
MARKER_WEST = 3
MARKER_NORTH = 4
MARKER_HOME = 5

# =============================================================================
# GAME
# =============================================================================

GAME_DURATION = 400  # seconds

# =============================================================================
# CONTROL PARAMETERS
# =============================================================================

CONTROL_LOOP_HZ = 20
STEERING_LIMIT = 45.0  # degrees either side
STEERING_CENTER = 90  # servo angle for straight ahead
THROTTLE_LIMIT = 100.0  # percent either side
AUX_MAX = 100.0  # percent

PID_SAMPLE_TIME = 0.01  # seconds

# Open-loop moves
CRUISE_SPEED = 50  # percent
CRUISE_LINEAR_SPEED = 100.0  # cm/s at cruise speed
SPIN_SPEED = 50  # percent
SPIN_ANGULAR_SPEED = 20.0  # degrees/s at spin speed
SPIN_HEADING_TOLERANCE = 5.0  # degrees, compass-terminated spin

# =============================================================================
# STALL DETECTION
# =============================================================================

STALL_BUFFER_SIZE = 10
STALL_MIN_SAMPLES = 5
STALL_CHECK_INTERVAL = 0.3  # seconds
STALL_MIN_THROTTLE = 20.0  # percent, below this the robot is not expected to move

# =============================================================================
# ARENA (cm, origin at arena centre, y = North)
# =============================================================================

ARENA_WIDTH = 130
ARENA_HEIGHT = 130
GRID_RESOLUTION = 5  # cm per occupancy cell

# Marker placement as surveyed on the field. Several ids appear at two
# corners; the layout is ambiguous and ArenaMap only warns about it.
MARKER_LAYOUT = (
    (MARKER_EAST, "NE", ARENA_WIDTH / 2, ARENA_HEIGHT / 2),
    (MARKER_EAST, "SE", ARENA_WIDTH / 2, -ARENA_HEIGHT / 2),
    (MARKER_NORTH, "NE", ARENA_WIDTH / 2, ARENA_HEIGHT / 2),
    (MARKER_NORTH, "NW", -ARENA_WIDTH / 2, ARENA_HEIGHT / 2),
    (MARKER_WEST, "NW", -ARENA_WIDTH / 2, ARENA_HEIGHT / 2),
    (MARKER_WEST, "SW", -ARENA_WIDTH / 2, -ARENA_HEIGHT / 2),
    (MARKER_SOUTH, "SW", -ARENA_WIDTH / 2, -ARENA_HEIGHT / 2),
    (MARKER_SOUTH, "SE", ARENA_WIDTH / 2, -ARENA_HEIGHT / 2),
)

# Base camp is the North-East corner
BASE_CAMP = (MARKER_HOME, "Base", ARENA_WIDTH / 2, ARENA_HEIGHT / 2)

POSITION_MAX_AGE = 5.0  # seconds
POSITION_MIN_CONFIDENCE = 30

# =============================================================================
# WEB INTERFACE
# =============================================================================

WEB_HOST = "0.0.0.0"
WEB_PORT = 8080
