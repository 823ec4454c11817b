"""
NetShield - Pydantic Schemas
"""

from datetime import datetime
from typing import Annotated, Optional, Dict, Any, List, Literal
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from netshield.detectors.severity import AttackType, RecommendedAction, Severity


# =====================================================
# Feature Vector Vocabularies (KDD connection records)
# =====================================================

PROTOCOL_TYPES = ("tcp", "udp", "icmp")

TCP_FLAGS = ("SF", "S0", "S1", "S2", "S3", "REJ", "RSTO", "RSTOS0", "RSTR", "SH", "OTH")

KDD_SERVICES = (
    "aol", "auth", "bgp", "courier", "csnet_ns", "ctf", "daytime", "discard",
    "domain", "domain_u", "echo", "eco_i", "ecr_i", "efs", "exec", "finger",
    "ftp", "ftp_data", "gopher", "harvest", "hostnames", "http", "http_2784",
    "http_443", "http_8001", "imap4", "IRC", "iso_tsap", "klogin", "kshell",
    "ldap", "link", "login", "mtp", "name", "netbios_dgm", "netbios_ns",
    "netbios_ssn", "netstat", "nnsp", "nntp", "ntp_u", "other", "pm_dump",
    "pop_2", "pop_3", "printer", "private", "red_i", "remote_job", "rje",
    "shell", "smtp", "sql_net", "ssh", "sunrpc", "supdup", "systat", "telnet",
    "tftp_u", "tim_i", "time", "urh_i", "urp_i", "uucp", "uucp_path", "vmnet",
    "whois", "X11", "Z39_50",
)

Count = Annotated[int, Field(ge=0)]
Seconds = Annotated[float, Field(ge=0)]
Rate = Annotated[float, Field(ge=0.0, le=1.0)]
Binary = Annotated[int, Field(ge=0, le=1)]


class FeatureVector(BaseModel):
    """One observed flow, described by the 41 KDD connection features."""

    model_config = ConfigDict(frozen=True)

    # Basic connection features
    duration: Seconds
    protocol_type: Literal["tcp", "udp", "icmp"]
    service: str
    flag: Literal["SF", "S0", "S1", "S2", "S3", "REJ", "RSTO", "RSTOS0", "RSTR", "SH", "OTH"]
    src_bytes: Count
    dst_bytes: Count
    land: Binary
    wrong_fragment: Count
    urgent: Count

    # Content features
    hot: Count
    num_failed_logins: Count
    logged_in: Binary
    num_compromised: Count
    root_shell: Count
    su_attempted: Count
    num_root: Count
    num_file_creations: Count
    num_shells: Count
    num_access_files: Count
    num_outbound_cmds: Count
    is_host_login: Binary
    is_guest_login: Binary

    # Time-based traffic features (two-second window)
    count: Count
    srv_count: Count
    serror_rate: Rate
    srv_serror_rate: Rate
    rerror_rate: Rate
    srv_rerror_rate: Rate
    same_srv_rate: Rate
    diff_srv_rate: Rate
    srv_diff_host_rate: Rate

    # Host-based traffic features (last 100 connections)
    dst_host_count: Count
    dst_host_srv_count: Count
    dst_host_same_srv_rate: Rate
    dst_host_diff_srv_rate: Rate
    dst_host_same_src_port_rate: Rate
    dst_host_srv_diff_host_rate: Rate
    dst_host_serror_rate: Rate
    dst_host_srv_serror_rate: Rate
    dst_host_rerror_rate: Rate
    dst_host_srv_rerror_rate: Rate

    @field_validator("service")
    @classmethod
    def _known_service(cls, value: str) -> str:
        if value not in KDD_SERVICES:
            raise ValueError(f"unknown service {value!r}")
        return value


class Verdict(BaseModel):
    """Classifier output for one feature vector."""

    model_config = ConfigDict(frozen=True)

    is_malicious: bool
    attack_type: AttackType
    severity: Severity
    confidence: float = Field(ge=0.0, le=1.0)


# =====================================================
# Stored Records
# =====================================================

class Alert(BaseModel):
    """Persisted record of a malicious verdict."""

    model_config = ConfigDict(frozen=True)

    id: str
    timestamp: datetime
    source_ip: str
    dest_ip: str
    attack_type: AttackType
    severity: Severity
    confidence_score: float = Field(ge=0.0, le=1.0)
    packet_data: Optional[Dict[str, Any]] = None


class TrafficStats(BaseModel):
    """Cumulative traffic counters snapshot."""
    id: str
    timestamp: datetime
    total_packets: int = 0
    normal_packets: int = 0
    malicious_packets: int = 0
    bytes_transferred: int = 0


class BlockedIP(BaseModel):
    """Blocklist entry."""
    id: str
    ip_address: str
    block_reason: str
    blocked_at: datetime
    unblock_at: Optional[datetime] = None
    is_active: bool = True


# =====================================================
# API Request Schemas
# =====================================================

class ClassifyRequest(BaseModel):
    """Payload for the classification endpoint."""
    features: FeatureVector = Field(validation_alias=AliasChoices("features", "packet_features"))
    source_ip: str = Field(min_length=1)
    dest_ip: str = Field(min_length=1)


class BlockRequest(BaseModel):
    """Manual block of an address."""
    ip_address: str = Field(min_length=1)
    block_reason: str = "Manual block"


# =====================================================
# API Response Schemas
# =====================================================

class HealthResponse(BaseModel):
    """Health check response."""
    status: str = "ok"
    timestamp: str
    version: str = "1.0.0"
    store: str = "memory"
    classifier: Dict[str, Any] = Field(default_factory=dict)


class ClassifyResponse(BaseModel):
    """Response for the classification endpoint."""
    prediction: Verdict
    alert_stored: bool


class DemoResponse(BaseModel):
    success: bool = True
    alerts_created: int = 0
    blocks_created: int = 0


class BlockResponse(BaseModel):
    """Result of a block request; duplicate=True means the address was already blocked."""
    blocked: BlockedIP
    duplicate: bool = False


class RankingEntry(BaseModel):
    key: str
    count: int


class AlertInvestigation(BaseModel):
    """Single-alert drill-down view."""
    alert: Alert
    threat_score: int
    threat_level: Severity
    recommended_action: RecommendedAction


class TrafficOverview(BaseModel):
    """Derived view of the latest traffic snapshot."""
    total_packets: int
    normal_packets: int
    malicious_packets: int
    malicious_percentage: float
    normal_percentage: float
    threat_level: str
    megabytes_transferred: float


class TrafficPoint(BaseModel):
    timestamp: datetime
    total: int
    normal: int
    malicious: int


class DashboardSummary(BaseModel):
    """Everything the overview page needs in one round trip."""
    status: str = "ok"
    alerts_considered: int = 0
    severity_counts: Dict[str, int] = Field(default_factory=dict)
    top_sources: List[RankingEntry] = Field(default_factory=list)
    top_attacks: List[RankingEntry] = Field(default_factory=list)
    alerts_last_minute: int = 0
    traffic: Optional[TrafficOverview] = None
    active_blocks: int = 0
