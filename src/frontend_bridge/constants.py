"""Global constants for frontend-bridge."""

# Marker files

MARKER_PREFIX = "frontend_bridge_server_"
MARKER_EXTENSION = ".json"

# Readiness detection defaults
#
# Covers the common dev servers:
# - Nuxt: "Local: http://localhost:3000"
# - Vite: "VITE ready in 500ms", "http://localhost:5173"
# - Next.js: "ready - started server"
# - CRA: "Compiled successfully!"
# - Angular: "listening on localhost:4200"
DEFAULT_READY_PATTERN = "ready|localhost|started|listening|compiled|http://|https://"

DEFAULT_READY_TIMEOUT = 60.0
DEFAULT_CI_READY_TIMEOUT = 120.0

# HTTP verification after the ready pattern matched
DEFAULT_HTTP_VERIFY_ATTEMPTS = 10
DEFAULT_HTTP_VERIFY_INTERVAL = 0.5
DEFAULT_HTTP_CHECK_TIMEOUT = 1.0
DEFAULT_HTTP_GET_TIMEOUT = 10.0

# Probe used to detect an unknown listener before spawning
DEFAULT_PORT_PROBE_TIMEOUT = 0.5

# Graceful termination window before force-kill
DEFAULT_STOP_TIMEOUT = 3.0

# Lines of captured output quoted in error messages
DEFAULT_OUTPUT_TAIL_LINES = 20

DEFAULT_FRONTEND_KEY = "default"

# Environment variables
ENV_MARKER_DIR = "FRONTEND_BRIDGE_MARKER_DIR"
ENV_READY_TIMEOUT = "FRONTEND_BRIDGE_READY_TIMEOUT"
ENV_BACKEND_URL = "FRONTEND_BRIDGE_BACKEND_URL"
ENV_DEFAULT_URL = "FRONTEND_BRIDGE_URL"

# Set by CI/CD platforms
CI_VARIABLES = (
    "CI",
    "GITHUB_ACTIONS",
    "GITLAB_CI",
    "CIRCLECI",
    "TRAVIS",
    "JENKINS_URL",
    "BUILDKITE",
    "TEAMCITY_VERSION",
    "TF_BUILD",
    "BITBUCKET_BUILD_NUMBER",
    "CODEBUILD_BUILD_ID",
    "DRONE",
    "APPVEYOR",
    "SEMAPHORE",
)

# API URL variables read by common frontend frameworks
FRAMEWORK_API_ENV_VARS = (
    # Generic
    "API_URL",
    "API_BASE_URL",
    "BACKEND_URL",
    # Vite
    "VITE_API_URL",
    "VITE_API_BASE_URL",
    # Nuxt 3
    "NUXT_PUBLIC_API_BASE",
    "NUXT_PUBLIC_API_URL",
    # Next.js
    "NEXT_PUBLIC_API_URL",
    "NEXT_PUBLIC_API_BASE_URL",
    # Create React App
    "REACT_APP_API_URL",
    "REACT_APP_API_BASE_URL",
)
