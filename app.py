import aws_cdk as cdk
from config import get_config
from stacks.sorry_page_stack import SorryPageStack

app = cdk.App()
config = get_config(app)

# =================================================================
# SORRY PAGE STACK (Network + Web Service + Static Fallback)
# =================================================================
main_env = cdk.Environment(account=config.account, region=config.region)
sorry_page_stack = SorryPageStack(
    app, f"SorryPage-{config.name}",
    config=config,
    env=main_env
)

# =================================================================
# TAGS
# =================================================================
cdk.Tags.of(app).add("Project", "SorryPage")
cdk.Tags.of(app).add("Environment", config.name)

app.synth()
