"""
Network Infrastructure
VPC with public subnets for EKS
"""
import pulumi_aws as aws
from typing import Dict, List


def create_network(cluster_name: str, vpc_cidr: str, public_subnet_cidrs: List[str],
                   availability_zones: List[str], tags: Dict[str, str] = None) -> Dict[str, any]:
    """
    Create the VPC, one public subnet per CIDR and a shared public route table

    Args:
        cluster_name: EKS cluster name, used for naming and subnet discovery tags
        vpc_cidr: VPC CIDR block
        public_subnet_cidrs: Public subnet CIDR blocks
        availability_zones: Zone for each subnet, in the same order
        tags: Additional tags for all resources

    Returns:
        Dict with the VPC, subnets and their ids
    """
    tags = tags or {}
    if len(availability_zones) < len(public_subnet_cidrs):
        raise ValueError("Each public subnet needs an availability zone")

    vpc = aws.ec2.Vpc(f"{cluster_name}-vpc",
        cidr_block=vpc_cidr,
        enable_dns_hostnames=True,
        enable_dns_support=True,
        tags={**tags, "Name": f"{cluster_name}-vpc"})

    igw = aws.ec2.InternetGateway(f"{cluster_name}-igw",
        vpc_id=vpc.id,
        tags={**tags, "Name": f"{cluster_name}-igw"})

    # Single route table for public access
    route_table = aws.ec2.RouteTable(f"{cluster_name}-public-rt",
        vpc_id=vpc.id,
        routes=[aws.ec2.RouteTableRouteArgs(
            cidr_block="0.0.0.0/0",
            gateway_id=igw.id)],
        tags={**tags, "Name": f"{cluster_name}-public-rt"})

    subnets = []
    for index, (cidr, zone) in enumerate(zip(public_subnet_cidrs, availability_zones), start=1):
        subnet = aws.ec2.Subnet(f"{cluster_name}-public-subnet-{index}",
            vpc_id=vpc.id,
            cidr_block=cidr,
            availability_zone=zone,
            map_public_ip_on_launch=True,
            tags={
                **tags,
                "Name": f"{cluster_name}-public-{index}",
                "kubernetes.io/role/elb": "1",
                f"kubernetes.io/cluster/{cluster_name}": "shared",
            })
        aws.ec2.RouteTableAssociation(f"{cluster_name}-public-subnet-{index}-rt",
            subnet_id=subnet.id,
            route_table_id=route_table.id)
        subnets.append(subnet)

    return {
        "vpc": vpc,
        "vpc_id": vpc.id,
        "subnets": subnets,
        "subnet_ids": [subnet.id for subnet in subnets],
        "route_table": route_table,
    }
