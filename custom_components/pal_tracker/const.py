"""Constants for the PAL Tracker integration."""

DOMAIN = "pal_tracker"

# Configuration
CONF_WEB_APP_URL = "web_app_url"
CONF_SYNC_INTERVAL = "sync_interval"

# Default values
DEFAULT_SYNC_INTERVAL = 30  # seconds
MIN_SYNC_INTERVAL = 10  # seconds
DEFAULT_TITLE = "PAL Tracker"

# Sensor types
SENSOR_STUDENT_COUNT = "student_count"
SENSOR_SYNC_STATUS = "sync_status"
SENSOR_INSTRUCTION_TIME = "instruction_time"
SENSOR_INTERVIEWS = "interviews"
SENSOR_WORK_ORDERS = "work_orders"

# Attributes
ATTR_STUDENT_ID = "student_id"
ATTR_STUDENT_NAME = "student_name"
ATTR_INTERVIEW_TYPE = "interview_type"
ATTR_INDEX = "index"

# Services
SERVICE_REFRESH_DATA = "refresh_data"
SERVICE_IMPORT_LOCAL_DATA = "import_local_data"
SERVICE_SELECT_STUDENT = "select_student"
SERVICE_ADD_STUDENT = "add_student"
SERVICE_UPDATE_PROFILE = "update_profile"
SERVICE_DELETE_STUDENT = "delete_student"
SERVICE_UPDATE_INTERVIEW = "update_interview"
SERVICE_ADD_WORK_ORDER = "add_work_order"
SERVICE_UPDATE_WORK_ORDER = "update_work_order"
SERVICE_REMOVE_WORK_ORDER = "remove_work_order"
SERVICE_UPDATE_INSTRUCTION_LOG = "update_instruction_log"
SERVICE_ADD_LOG_ENTRY = "add_log_entry"
SERVICE_REMOVE_LOG_ENTRY = "remove_log_entry"
