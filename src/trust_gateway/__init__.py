"""trust_gateway — Paid trust evaluation for ERC-8004 agents over HTTP and A2A."""

from trust_gateway.config import GatewayConfig
from trust_gateway.errors import (
    GatewayError, InputValidationError, PaymentRequiredError, NotFoundError, UpstreamError,
)
from trust_gateway.chains import Chain, ChainConfig, ChainTable
from trust_gateway.models import RegistrationFile, FeedbackSample, parse_agent_id
from trust_gateway.registry import (
    RegistryClient, RegistryError, AgentNotRegistered,
    Web3RegistryClient, InMemoryRegistryClient,
)
from trust_gateway.resolver import RegistrationResolver, ResolutionError, FailureKind
from trust_gateway.scoring import TrustVerdict, TrustScoreResult, compute_trust_score, score_to_verdict
from trust_gateway.validation import ValidationPipeline, ValidationReport, ValidationVerdict
from trust_gateway.x402 import PaymentVerifier, FacilitatorClient, PriceEntry, PriceTable
from trust_gateway.payment_gate import PaymentGate, RequestDescriptor, Transport, A2AMethod
from trust_gateway.service import TrustService

__version__ = "0.1.0"
