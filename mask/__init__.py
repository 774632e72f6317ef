"""Mask post-processing: logits to binary mask to RGBA cutout."""

from .logits_codec import decode_logits, decode_logits_response, encode_logits
from .pipeline import composite, make_cutout, morphological_open, resize, threshold
from .session import CommittedMask, MaskSession

__all__ = [
    "CommittedMask",
    "MaskSession",
    "composite",
    "decode_logits",
    "decode_logits_response",
    "encode_logits",
    "make_cutout",
    "morphological_open",
    "resize",
    "threshold",
]
