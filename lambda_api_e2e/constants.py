# Where: lambda_api_e2e/constants.py
# What: Fixed names, environment keys and retry budgets for Lambda API runs.
# Why: Keep literals shared by the driver, the CLI and the live tests in one place.

ENV_PRIMARY_HOSTED_ZONE = "TF_VAR_primary_hosted_zone"
ENV_ALTERNATE_DOMAIN_NAME = "TF_VAR_alternate_domain_name"
ENV_EXAMPLES_DIR = "LAMBDA_API_EXAMPLES_DIR"
ENV_LOCK_TIMEOUT = "LAMBDA_API_LOCK_TIMEOUT"
ENV_SKIP_TEARDOWN = "LAMBDA_API_SKIP_TEARDOWN"
ENV_LOG_DIR = "LAMBDA_API_LOG_DIR"
ENV_TERRAFORM_BIN = "TERRAFORM_BIN"
ENV_DOCKER_BIN = "DOCKER_BIN"

NAME_PREFIX = "ex-tf-lambda-api"
LOG_GROUP_PREFIX = "/aws/lambda/"

FLAVOR_DEFAULT = "default"
FLAVOR_IMAGE = "image"
FLAVOR_ALT_DOMAIN = "alt-domain"
FLAVORS = (FLAVOR_DEFAULT, FLAVOR_IMAGE, FLAVOR_ALT_DOMAIN)

DEFAULT_REGION = "us-east-1"
DEFAULT_LOCK_TIMEOUT = "5m"
DEFAULT_TERRAFORM_BIN = "terraform"
DEFAULT_DOCKER_BIN = "docker"

# Registry sub-plan applied before the image can be pushed.
ECR_MODULE_TARGET = "module.ecr"
ECR_REPO_OUTPUT = "ecr_repo_url"
ECR_USERNAME = "AWS"
IMAGE_TAG = "latest"
IMAGE_PLATFORMS = ("linux/arm64",)
IMAGE_BUILD_FLAGS = ("--provenance", "false", "--load")

LOCAL_CONTAINER_PORT = 8080
CONTAINER_STOP_GRACE_SECONDS = 5

OUTPUT_ARN = "arn"
OUTPUT_DOMAIN_NAME = "domain_name"
OUTPUT_ALTERNATE_DOMAIN_NAME = "alternate_domain_name"
OUTPUT_ALTERNATE_DOMAIN_ENDPOINT = "alternate_domain_endpoint"

STATUS_PATH = "/status"
EXPECTED_STATUS_BODY = "ok"

# Retry budgets: one initial attempt plus N retries at a fixed interval.
LOCAL_IMAGE_PROBE_RETRIES = 10
LOCAL_IMAGE_PROBE_INTERVAL = 1.0
STATUS_PROBE_RETRIES = 60
STATUS_PROBE_INTERVAL = 5.0
DEPLOYED_IMAGE_PROBE_RETRIES = 30
DEPLOYED_IMAGE_PROBE_INTERVAL = 1.0
GATEWAY_RETRY_STATUSES = (500, 502, 503, 504)

DEFAULT_REQUEST_TIMEOUT = 10

PRIMARY_HOSTED_ZONE_GUIDANCE = (
    f"{ENV_PRIMARY_HOSTED_ZONE} must be set to run tests. "
    f"e.g. 'export {ENV_PRIMARY_HOSTED_ZONE}=example.org'"
)


def variant_env_guidance(key: str, variant: str) -> str:
    return f"{key} must be set to test {variant} variant. e.g. 'export {key}=example.org'"


def api_arn_prefix(region: str) -> str:
    return f"arn:aws:apigateway:{region}::/apis/"
