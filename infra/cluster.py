"""
EKS Cluster Core
Cluster, managed node group and the IAM roles they need
"""
import json
import pulumi
import pulumi_aws as aws
from typing import Dict, List

NODE_POLICIES = {
    "worker": "arn:aws:iam::aws:policy/AmazonEKSWorkerNodePolicy",
    "cni": "arn:aws:iam::aws:policy/AmazonEKS_CNI_Policy",
    "ecr": "arn:aws:iam::aws:policy/AmazonEC2ContainerRegistryReadOnly",
    "ssm": "arn:aws:iam::aws:policy/AmazonSSMManagedInstanceCore",
}


def assume_role_policy(service: str) -> str:
    """Trust policy letting an AWS service assume a role"""
    return json.dumps({
        "Version": "2012-10-17",
        "Statement": [{
            "Action": "sts:AssumeRole",
            "Effect": "Allow",
            "Principal": {"Service": service}
        }]
    })


def create_cluster(network: Dict[str, any], cluster_name: str, cluster_version: str,
                   node_instance_types: List[str], node_desired_size: int, node_min_size: int,
                   node_max_size: int, node_disk_size: int, capacity_type: str = "ON_DEMAND",
                   enabled_log_types: List[str] = None, ci_role_arn: str = "",
                   tags: Dict[str, str] = None) -> Dict[str, any]:
    """
    Create the EKS cluster and its primary node group

    Args:
        network: Result of create_network
        cluster_name: EKS cluster name
        cluster_version: Kubernetes version
        node_instance_types: Instance types for the node group
        node_desired_size: Desired node count
        node_min_size: Minimum node count
        node_max_size: Maximum node count
        node_disk_size: Node disk size in GiB
        capacity_type: ON_DEMAND or SPOT
        enabled_log_types: Control plane log types sent to CloudWatch
        ci_role_arn: Role the deployment pipeline assumes; granted cluster admin when set
        tags: Additional tags for all resources

    Returns:
        Dict with cluster, node group and role resources
    """
    tags = tags or {}

    # IAM role for cluster
    cluster_role = aws.iam.Role(f"{cluster_name}-cluster-role",
        assume_role_policy=assume_role_policy("eks.amazonaws.com"),
        tags={**tags, "Name": f"{cluster_name}-cluster-role"})

    aws.iam.RolePolicyAttachment(f"{cluster_name}-cluster-policy",
        policy_arn="arn:aws:iam::aws:policy/AmazonEKSClusterPolicy",
        role=cluster_role.name)

    # IAM role for nodes
    node_role = aws.iam.Role(f"{cluster_name}-node-role",
        assume_role_policy=assume_role_policy("ec2.amazonaws.com"),
        tags={**tags, "Name": f"{cluster_name}-node-role"})

    node_policy_attachments = [
        aws.iam.RolePolicyAttachment(f"{cluster_name}-node-policy-{key}",
            policy_arn=policy_arn,
            role=node_role.name)
        for key, policy_arn in NODE_POLICIES.items()
    ]

    cluster = aws.eks.Cluster(f"{cluster_name}-cluster",
        name=cluster_name,
        role_arn=cluster_role.arn,
        version=cluster_version,
        vpc_config=aws.eks.ClusterVpcConfigArgs(
            subnet_ids=network["subnet_ids"],
            endpoint_public_access=True,
            endpoint_private_access=True,
        ),
        access_config=aws.eks.ClusterAccessConfigArgs(
            authentication_mode="API"
        ),
        enabled_cluster_log_types=enabled_log_types or ["api", "audit", "authenticator"],
        tags={**tags, "Name": cluster_name})

    # Deployment pipeline access
    ci_access = None
    if ci_role_arn:
        ci_access = aws.eks.AccessEntry(f"{cluster_name}-ci-access",
            cluster_name=cluster.name,
            principal_arn=ci_role_arn,
            type="STANDARD",
            opts=pulumi.ResourceOptions(depends_on=[cluster]))

        aws.eks.AccessPolicyAssociation(f"{cluster_name}-ci-admin",
            cluster_name=cluster.name,
            principal_arn=ci_role_arn,
            policy_arn="arn:aws:eks::aws:cluster-access-policy/AmazonEKSClusterAdminPolicy",
            access_scope=aws.eks.AccessPolicyAssociationAccessScopeArgs(type="cluster"),
            opts=pulumi.ResourceOptions(depends_on=[ci_access]))

    node_group = aws.eks.NodeGroup(f"{cluster_name}-nodes",
        cluster_name=cluster.name,
        node_role_arn=node_role.arn,
        subnet_ids=network["subnet_ids"],
        instance_types=node_instance_types,
        capacity_type=capacity_type,
        scaling_config=aws.eks.NodeGroupScalingConfigArgs(
            desired_size=node_desired_size,
            max_size=node_max_size,
            min_size=node_min_size,
        ),
        disk_size=node_disk_size,
        tags={**tags, "Name": f"{cluster_name}-nodes"},
        opts=pulumi.ResourceOptions(depends_on=node_policy_attachments))

    return {
        "cluster": cluster,
        "cluster_name": cluster.name,
        "cluster_endpoint": cluster.endpoint,
        "node_group": node_group,
        "cluster_role": cluster_role,
        "node_role": node_role,
        "ci_access": ci_access,
    }
