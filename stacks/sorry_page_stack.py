from typing import Any
from aws_cdk import (
    Stack,
    CfnOutput,
    aws_ec2 as ec2,
    aws_ecs as ecs,
    aws_ecs_patterns as ecs_patterns,
    aws_s3 as s3,
    aws_s3_deployment as s3deploy,
    aws_iam as iam,
    aws_cloudfront as cloudfront,
    aws_cloudfront_origins as origins,
)
from constructs import Construct


class SorryPageStack(Stack):
    """
    Deploys the web service together with its static fallback page:
    1. VPC with public/private subnets across two AZs, one NAT gateway and an S3 gateway endpoint.
    2. ECS Cluster running a load-balanced Fargate service.
    3. Private S3 bucket holding the sorry page contents.
    4. CloudFront Distribution reading the bucket through Origin Access Control (OAC).
    """
    def __init__(self, scope: Construct, construct_id: str, config: Any, **kwargs) -> None:
        super().__init__(scope, construct_id, **kwargs)

        # =================================================================
        # 1. NETWORK
        # =================================================================
        self.vpc = ec2.Vpc(self, "Vpc",
            ip_addresses=ec2.IpAddresses.cidr(config.vpc_cidr),
            enable_dns_hostnames=True,
            enable_dns_support=True,
            nat_gateways=config.nat_gateways,
            max_azs=config.max_azs,
            subnet_configuration=[
                ec2.SubnetConfiguration(
                    name="PublicSubnet",
                    subnet_type=ec2.SubnetType.PUBLIC,
                    cidr_mask=config.subnet_cidr_mask,
                    map_public_ip_on_launch=True
                ),
                ec2.SubnetConfiguration(
                    name="PrivateSubnet",
                    subnet_type=ec2.SubnetType.PRIVATE_WITH_EGRESS,
                    cidr_mask=config.subnet_cidr_mask
                ),
            ],
            # Keeps S3 traffic from the private subnets off the NAT gateway
            gateway_endpoints={
                "S3": ec2.GatewayVpcEndpointOptions(service=ec2.GatewayVpcEndpointAwsService.S3)
            }
        )

        # =================================================================
        # 2. ECS CLUSTER
        # =================================================================
        self.cluster = ecs.Cluster(self, "Cluster", vpc=self.vpc)

        # =================================================================
        # 3. ALB & FARGATE SERVICE
        # =================================================================
        # Tasks live in the private subnets; only the load balancer is public.
        self.web_service = ecs_patterns.ApplicationLoadBalancedFargateService(self, "SampleWebService",
            public_load_balancer=True,
            cluster=self.cluster,
            cpu=config.cpu,
            desired_count=config.desired_count if config.desired_count > 0 else None,
            memory_limit_mib=config.memory_limit_mib,
            assign_public_ip=False,
            task_subnets=ec2.SubnetSelection(subnet_type=ec2.SubnetType.PRIVATE_WITH_EGRESS),
            task_image_options=ecs_patterns.ApplicationLoadBalancedTaskImageOptions(
                image=ecs.ContainerImage.from_registry(config.container_image)
            )
        )

        # The pattern rejects a desired count of 0, so a scaled-down service is set on the L1 resource.
        if config.desired_count == 0:
            cfn_service = self.web_service.service.node.default_child
            cfn_service.desired_count = 0

        # =================================================================
        # 4. SORRY PAGE BUCKET
        # =================================================================
        self.sorry_page_bucket = s3.Bucket(self, "SorryPageBucket",
            versioned=True,
            block_public_access=s3.BlockPublicAccess.BLOCK_ALL,
            removal_policy=config.removal_policy,
            auto_delete_objects=config.auto_delete_objects,
            cors=[
                s3.CorsRule(
                    allowed_methods=[s3.HttpMethods.GET, s3.HttpMethods.HEAD],
                    allowed_origins=["*"],
                    allowed_headers=["*"]
                )
            ]
        )

        # Deploy the local contents verbatim to the bucket root
        s3deploy.BucketDeployment(self, "DeployContents",
            sources=[s3deploy.Source.asset(config.sorry_page_path)],
            destination_bucket=self.sorry_page_bucket,
            retain_on_delete=config.retain_on_delete
        )

        # =================================================================
        # 5. ORIGIN ACCESS CONTROL
        # =================================================================
        self.origin_access_control = cloudfront.CfnOriginAccessControl(self, "OriginAccessControl",
            origin_access_control_config=cloudfront.CfnOriginAccessControl.OriginAccessControlConfigProperty(
                name=f"sorry-page-oac-{config.name}",
                origin_access_control_origin_type="s3",
                signing_behavior="always",
                signing_protocol="sigv4",
                description="S3 Access Control"
            )
        )

        # =================================================================
        # 6. CLOUDFRONT DISTRIBUTION
        # =================================================================
        self.distribution = cloudfront.Distribution(self, "Distribution",
            comment=f"Sorry page distribution ({config.name})",
            default_behavior=cloudfront.BehaviorOptions(
                origin=origins.S3BucketOrigin.with_bucket_defaults(self.sorry_page_bucket)
            ),
            default_root_object="index.html",
            http_version=cloudfront.HttpVersion.HTTP2_AND_3
        )

        # The L2 origin still renders the legacy OAI field: clear it and attach the OAC instead.
        cfn_distribution = self.distribution.node.default_child
        cfn_distribution.add_property_override(
            "DistributionConfig.Origins.0.S3OriginConfig.OriginAccessIdentity", ""
        )
        cfn_distribution.add_property_override(
            "DistributionConfig.Origins.0.OriginAccessControlId", self.origin_access_control.attr_id
        )

        # =================================================================
        # 7. BUCKET POLICY (OAC READ ACCESS)
        # =================================================================
        # Only requests signed by this exact distribution may read objects.
        distribution_arn = f"arn:aws:cloudfront::{self.account}:distribution/{self.distribution.distribution_id}"
        self.sorry_page_bucket.add_to_resource_policy(iam.PolicyStatement(
            sid="AllowCloudFrontServicePrincipalReadOnly",
            effect=iam.Effect.ALLOW,
            principals=[iam.ServicePrincipal("cloudfront.amazonaws.com")],
            actions=["s3:GetObject"],
            resources=[self.sorry_page_bucket.arn_for_objects("*")],
            conditions={
                "StringEquals": {
                    "AWS:SourceArn": distribution_arn
                }
            }
        ))

        # =================================================================
        # 8. OUTPUTS
        # =================================================================
        CfnOutput(self, "CloudFrontDomain", value=self.distribution.distribution_domain_name)
        CfnOutput(self, "DistributionId", value=self.distribution.distribution_id)
        CfnOutput(self, "SorryPageBucketName", value=self.sorry_page_bucket.bucket_name)
