SOFT_ERROR_THRESHOLD = 3
HARD_ERROR_THRESHOLD = 5
MAX_STEPS_PER_RESUME = 25
THREAD_ID_PREFIX = "onboarding"
