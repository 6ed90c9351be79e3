"""Line constants shared by the analytics code.

These describe the physical line rather than the analytics logic, so they live
beside the storage configuration.  Each one can be overridden per deployment
through the environment variable of the same name (see ``create_app``).
"""

# Fixed local offset used for all wall-clock arithmetic (UTC+7).
LOCAL_UTC_OFFSET_MINUTES = 7 * 60

# Pieces per rack.
PACK_SIZE = 8

# Shift label -> (start hour, end hour) in local time.  A window whose end hour
# is not after its start hour finishes on the following calendar day.
SHIFT_HOURS = {
    "day": (8, 20),
    "night": (20, 8),
}

# Pace classification thresholds, in minutes of time variance.
FAST_THRESHOLD_MINUTES = 5
SLOW_THRESHOLD_MINUTES = -5

# "last": the last plan with a nonzero cycle time wins.
# "weighted": target-quantity weighted average of nonzero cycle times.
CYCLE_TIME_POLICY = "last"
CYCLE_TIME_POLICIES = ("last", "weighted")

DASHBOARD_WORKERS = 6

# Part code recorded on plans that are not split per part.
GENERAL_PART_CODE = "General"
