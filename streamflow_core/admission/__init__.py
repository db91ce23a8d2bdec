"""
Admission Control Module
========================
Concurrency ceiling for proxy requests.
"""

from .models import AdmissionSnapshot
from .controller import AdmissionController, AdmissionTicket

__all__ = [
    "AdmissionSnapshot",
    "AdmissionController",
    "AdmissionTicket",
]
