"""
Single-image coffee-leaf disease detection.

decode -> resize -> NCHW tensor -> inference gateway -> output decoding -> filtering.
Core pieces depend only on NumPy; OpenCV is used for image decoding/resizing and
drawing, and inference runtimes live behind `leaf_kit.backends`.
"""

from .types import Detection, DetectionResult, InputTensor, OutputTensor, RawImage
from .errors import (
    DecodeError,
    InferenceError,
    LeafKitError,
    ModelLoadError,
    NoImageError,
    OutputFormatError,
    SessionBusyError,
    SessionError,
    ShapeMismatchError,
)
from .catalog import COFFEE_LEAF_CLASSES, DEFAULT_CATALOG, ClassCatalog, load_class_catalog
from .config import DetectorConfig, load_detector_config
from .decode import decode_image, decode_image_file, resize_to_square
from .tensor import pack_tensor
from .gateway import InferenceGateway, select_output
from .postprocess import Candidates, LayoutKind, OutputInterpreter, detect_layout
from .filtering import DetectionFilter
from .runtime import (
    DetectionPipeline,
    find_project_root,
    image_identity,
    load_pipeline,
    resolve_path,
    stage_model_artifact,
)
from .session import DetectionSession, SessionState
from .reporting import detections_to_dict, write_detections_json
from .visualize import draw_detections

__all__ = [
    "Detection",
    "DetectionResult",
    "InputTensor",
    "OutputTensor",
    "RawImage",
    "DecodeError",
    "InferenceError",
    "LeafKitError",
    "ModelLoadError",
    "NoImageError",
    "OutputFormatError",
    "SessionBusyError",
    "SessionError",
    "ShapeMismatchError",
    "COFFEE_LEAF_CLASSES",
    "DEFAULT_CATALOG",
    "ClassCatalog",
    "load_class_catalog",
    "DetectorConfig",
    "load_detector_config",
    "decode_image",
    "decode_image_file",
    "resize_to_square",
    "pack_tensor",
    "InferenceGateway",
    "select_output",
    "Candidates",
    "LayoutKind",
    "OutputInterpreter",
    "detect_layout",
    "DetectionFilter",
    "DetectionPipeline",
    "find_project_root",
    "image_identity",
    "load_pipeline",
    "resolve_path",
    "stage_model_artifact",
    "DetectionSession",
    "SessionState",
    "detections_to_dict",
    "write_detections_json",
    "draw_detections",
]
