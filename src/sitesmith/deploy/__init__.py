"""Deployment targets for built sites."""

from sitesmith.deploy.vercel import DeploymentError, VercelDeployer, VercelProject

__all__ = ["DeploymentError", "VercelDeployer", "VercelProject"]
