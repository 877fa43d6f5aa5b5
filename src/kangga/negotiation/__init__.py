from kangga.negotiation.service import NegotiationReason, NegotiationService

__all__ = ["NegotiationReason", "NegotiationService"]
