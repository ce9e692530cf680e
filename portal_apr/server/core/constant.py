PROJECT_NAME = "Portal APR"
API_V1_STR = "/api/v1"
VERSION = "1.0.0"
