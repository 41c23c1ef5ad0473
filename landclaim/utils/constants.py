"""Default claiming thresholds.

Every value here is a product-tunable default; runtime code reads them through
ClaimConfig so they can be overridden per deployment.
"""

# Earth model
EARTH_RADIUS_M = 6_371_008.8  # Mean radius, shared by distance and area math

# Fix screening
MAX_HORIZONTAL_ACCURACY_M = 50.0  # Noisier fixes are dropped
MAX_SPEED_MPS = 12.0  # Faster implies a GPS jump or a vehicle
MIN_POINT_SPACING_M = 10.0  # Closer fixes are stationary jitter

# Closure detection
CLOSURE_RADIUS_M = 30.0  # Distance to the first point that closes the loop
MIN_CLOSURE_POINTS = 10  # Points required before closure is considered
DEGENERATE_AREA_SQM = 1.0  # Loops at or below this are treated as lines

# Territory validation
MIN_TERRITORY_POINTS = 3
MIN_AREA_SQM = 100.0
OVERLAP_TOLERANCE_SQM = 0.0  # Shared area allowed with existing territories
OVERLAP_TOLERANCE_RATIO = 0.0  # Same, as a fraction of the new claim's area

# Proximity warnings (distance to another player's territory)
CAUTION_DISTANCE_M = 100.0
WARNING_DISTANCE_M = 50.0
DANGER_DISTANCE_M = 25.0

# Storage retries
STORAGE_RETRY_ATTEMPTS = 3
STORAGE_RETRY_WAIT_MIN_S = 0.5
STORAGE_RETRY_WAIT_MAX_S = 5.0

# Claim log
CLAIM_LOG_CAPACITY = 200
