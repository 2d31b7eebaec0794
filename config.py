import ipaddress
import os
from typing import Optional
from dotenv import load_dotenv
from aws_cdk import RemovalPolicy

# Load environment variables from a .env file
load_dotenv()

DEFAULT_SORRY_PAGE_PATH = os.path.join(os.path.dirname(os.path.abspath(__file__)), "sorry_page")

# Public + private subnet groups are declared per AZ
SUBNET_GROUPS = 2

MIN_SUBNET_MASK = 16
MAX_SUBNET_MASK = 28


class EnvConfig:
    """
    Stores environment-specific configuration for the sorry page stack.
    """
    def __init__(
        self,
        env_name: str,
        account: Optional[str],
        region: Optional[str],
        vpc_cidr: str = "10.1.0.0/16",
        max_azs: int = 2,
        nat_gateways: int = 1,
        subnet_cidr_mask: int = 24,
        container_image: str = "amazon/amazon-ecs-sample",
        cpu: int = 256,
        memory_limit_mib: int = 512,
        desired_count: int = 1,
        sorry_page_path: str = DEFAULT_SORRY_PAGE_PATH,
    ):
        self.name = env_name
        self.account = account
        self.region = region

        # Network
        self.vpc_cidr = vpc_cidr
        self.max_azs = max_azs
        self.nat_gateways = nat_gateways
        self.subnet_cidr_mask = subnet_cidr_mask

        # Web service sizing
        self.container_image = container_image
        self.cpu = cpu
        self.memory_limit_mib = memory_limit_mib
        self.desired_count = desired_count

        # Static contents deployed verbatim to the sorry page bucket
        self.sorry_page_path = sorry_page_path

        # Data Lifecycle Policy:
        # In 'prod', the bucket and its deployed objects survive stack deletion.
        # In other environments, everything is removed with the stack.
        if env_name == 'prod':
            self.removal_policy = RemovalPolicy.RETAIN
            self.auto_delete_objects = False
            self.retain_on_delete = True
        else:
            self.removal_policy = RemovalPolicy.DESTROY
            self.auto_delete_objects = True
            self.retain_on_delete = False

        self.validate()

    def validate(self) -> None:
        """
        Rejects values the provisioning engine would only fail on at apply time.
        """
        if self.desired_count < 0:
            raise RuntimeError(f"❌ INVALID CONFIG: desired_count must be >= 0, got {self.desired_count}")

        if self.max_azs < 1:
            raise RuntimeError(f"❌ INVALID CONFIG: max_azs must be >= 1, got {self.max_azs}")

        if self.nat_gateways < 0:
            raise RuntimeError(f"❌ INVALID CONFIG: nat_gateways must be >= 0, got {self.nat_gateways}")

        # Range accepted by AWS for VPC subnets
        if not MIN_SUBNET_MASK <= self.subnet_cidr_mask <= MAX_SUBNET_MASK:
            raise RuntimeError(
                f"❌ INVALID CONFIG: subnet mask must be between /{MIN_SUBNET_MASK} and /{MAX_SUBNET_MASK}, "
                f"got /{self.subnet_cidr_mask}"
            )

        try:
            network = ipaddress.ip_network(self.vpc_cidr)
        except ValueError as e:
            raise RuntimeError(f"❌ INVALID CONFIG: vpc_cidr '{self.vpc_cidr}' is not a valid CIDR ({e})") from e

        # Every subnet must fit inside the VPC range without overlapping
        if not network.prefixlen <= self.subnet_cidr_mask <= network.max_prefixlen:
            raise RuntimeError(
                f"❌ INVALID CONFIG: subnet mask /{self.subnet_cidr_mask} does not fit in {self.vpc_cidr}"
            )
        available = 2 ** (self.subnet_cidr_mask - network.prefixlen)
        required = self.max_azs * SUBNET_GROUPS
        if required > available:
            raise RuntimeError(
                f"❌ INVALID CONFIG: {self.vpc_cidr} holds {available} /{self.subnet_cidr_mask} subnets, "
                f"{required} required"
            )

        if not os.path.isdir(self.sorry_page_path):
            raise RuntimeError(f"❌ INVALID CONFIG: sorry page directory '{self.sorry_page_path}' not found")


def get_required_env(key: str, fallback_key: Optional[str] = None) -> str:
    """
    Retrieves a required environment variable or raises a RuntimeError if missing.
    The fallback key (e.g. CDK_DEFAULT_ACCOUNT set by the CDK CLI) is tried second.
    """
    value = os.getenv(key)
    if not value and fallback_key:
        value = os.getenv(fallback_key)
    if not value:
        raise RuntimeError(f"❌ MISSING CONFIG: Required environment variable '{key}' not found in .env")
    return value


def get_int_env(key: str, default: int) -> int:
    """
    Retrieves an optional integer environment variable, falling back to the default when unset.
    Raises a RuntimeError if the value is not an integer.
    """
    value = os.getenv(key)
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError as e:
        raise RuntimeError(f"❌ INVALID CONFIG: '{key}' must be an integer, got '{value}'") from e


def get_config(scope) -> EnvConfig:
    """
    Factory function to generate the EnvConfig object based on CDK context.
    Usage: cdk deploy -c env=prod
    """
    # Default to 'dev' environment if no context is provided
    env_name = scope.node.try_get_context("env") or "dev"
    prefix = env_name.upper()

    print(f"🔍 Initializing Sorry Page Infrastructure for environment: {prefix}")

    # Load Mandatory Variables
    account = get_required_env(f"{prefix}_ACCOUNT", "CDK_DEFAULT_ACCOUNT")
    region = get_required_env(f"{prefix}_REGION", "CDK_DEFAULT_REGION")

    # Load Optional Variables
    config = EnvConfig(
        env_name=env_name,
        account=account,
        region=region,
        vpc_cidr=os.getenv(f"{prefix}_VPC_CIDR") or "10.1.0.0/16",
        max_azs=get_int_env(f"{prefix}_MAX_AZS", 2),
        nat_gateways=get_int_env(f"{prefix}_NAT_GATEWAYS", 1),
        subnet_cidr_mask=get_int_env(f"{prefix}_SUBNET_CIDR_MASK", 24),
        container_image=os.getenv(f"{prefix}_CONTAINER_IMAGE") or "amazon/amazon-ecs-sample",
        cpu=get_int_env(f"{prefix}_CPU", 256),
        memory_limit_mib=get_int_env(f"{prefix}_MEMORY_LIMIT_MIB", 512),
        desired_count=get_int_env(f"{prefix}_DESIRED_COUNT", 1),
        sorry_page_path=os.getenv("SORRY_PAGE_PATH") or DEFAULT_SORRY_PAGE_PATH,
    )

    print(f"📦 Region: {config.region} | VPC: {config.vpc_cidr} | Tasks: {config.desired_count}")
    return config
