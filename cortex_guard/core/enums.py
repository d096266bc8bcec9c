"""Closed enumerations shared by the kernel components."""

from enum import Enum


class Role(str, Enum):
    ADMIN = "admin"
    MANAGER = "manager"
    DEVELOPER = "developer"
    VIEWER = "viewer"


class Permission(str, Enum):
    CONFIG_READ = "config:read"
    CONFIG_WRITE = "config:write"
    AUDIT_READ = "audit:read"
    AUDIT_WRITE = "audit:write"
    SKILLS_READ = "skills:read"
    SKILLS_WRITE = "skills:write"
    INTEGRATIONS_USE = "integrations:use"
    DEPLOY_RUN = "deploy:run"
    APPROVALS_DECIDE = "approvals:decide"


class ClassificationLevel(str, Enum):
    """Sensitivity tiers, declared from least to most sensitive."""
    PUBLIC = "public"
    INTERNAL = "internal"
    CONFIDENTIAL = "confidential"
    RESTRICTED = "restricted"


class ApprovalDecision(str, Enum):
    APPROVED = "approved"
    REJECTED = "rejected"
    TIMEOUT = "timeout"


class ChannelId(str, Enum):
    SLACK = "slack"
    TEAMS = "teams"
    GOOGLECHAT = "googlechat"
    WEBHOOK = "webhook"
