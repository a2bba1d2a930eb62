from __future__ import annotations

import hashlib
import logging
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Optional, Sequence, Tuple, Union

import numpy as np

from .catalog import DEFAULT_CATALOG, ClassCatalog
from .config import DetectorConfig
from .decode import decode_image, resize_to_square
from .errors import InferenceError, LeafKitError, ModelLoadError
from .filtering import DetectionFilter
from .gateway import InferenceGateway, select_output
from .postprocess import OutputInterpreter
from .tensor import pack_tensor
from .types import DetectionResult, InputTensor, OutputTensor, RawImage

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]
ImageInput = Union[bytes, bytearray, memoryview, RawImage]


def find_project_root(
    start: Optional[PathLike] = None,
    markers: Sequence[str] = ("pyproject.toml", "setup.py", ".git", "requirements.txt"),
) -> Path:
    """
    Best-effort project root discovery.

    Useful when models live in `<root>/models` and the caller runs from elsewhere.
    """

    p = Path(start) if start is not None else Path.cwd()
    p = p.resolve()

    # If a file is provided, start from its directory.
    if p.is_file():
        p = p.parent

    for parent in (p, *p.parents):
        for m in markers:
            if (parent / m).exists():
                return parent
    return p


def resolve_path(path: PathLike, root: Optional[PathLike] = "auto") -> Path:
    """
    Resolve `path` to an absolute Path.

    - Absolute paths are returned as-is.
    - Relative paths are resolved against `root` if provided, the project root otherwise.
    """

    p = Path(path)
    if p.is_absolute():
        return p

    if root == "auto" or root is None:
        base = find_project_root()
    else:
        base = Path(root).resolve()

    return (base / p).resolve()


def stage_model_artifact(source: PathLike, dest_dir: PathLike, *, overwrite: bool = False) -> Path:
    """
    Copy a packaged model into a writable directory once and return the staged path.

    An already staged copy is reused unless `overwrite` is set.
    """

    src = Path(source)
    dest = Path(dest_dir) / src.name
    if dest.exists() and not overwrite:
        logger.debug("Model already staged at %s", dest)
        return dest
    if not src.is_file():
        raise ModelLoadError(f"Model artifact not found: {src}")

    dest.parent.mkdir(parents=True, exist_ok=True)
    try:
        shutil.copy2(src, dest)
    except OSError as exc:
        raise ModelLoadError(f"Could not stage model {src} into {dest.parent}: {exc}") from exc
    logger.info("Staged model %s -> %s", src, dest)
    return dest


def image_identity(image: ImageInput) -> str:
    """SHA-1 of the encoded bytes (or of the pixel buffer for a RawImage)."""
    h = hashlib.sha1()
    if isinstance(image, RawImage):
        h.update(f"{image.width}x{image.height}".encode("ascii"))
        h.update(np.ascontiguousarray(image.data).tobytes())
    else:
        h.update(bytes(image))
    return h.hexdigest()


@dataclass(frozen=True)
class PreprocessResult:
    tensor: InputTensor
    orig_size: Tuple[int, int]


class DetectionPipeline:
    """
    Plug-and-play pipeline: decode -> resize -> pack -> inference -> decode output -> filter.

    The gateway is injected and owned by the caller (or by `load_pipeline`); `close()`
    releases it. The pipeline keeps no state between calls.
    """

    def __init__(
        self,
        gateway: InferenceGateway,
        *,
        catalog: ClassCatalog = DEFAULT_CATALOG,
        cfg: DetectorConfig = DetectorConfig(),
        backend_name: Optional[str] = None,
    ):
        self.gateway = gateway
        self.catalog = catalog
        self.cfg = cfg
        self.backend_name = backend_name
        self.interpreter = OutputInterpreter(num_classes=len(catalog))
        self.filter = DetectionFilter.from_config(catalog, cfg)

    def preprocess(self, image: ImageInput) -> PreprocessResult:
        raw = image if isinstance(image, RawImage) else decode_image(image)
        side = self.cfg.input_size
        resized = resize_to_square(raw, side)
        return PreprocessResult(tensor=pack_tensor(resized, side), orig_size=raw.size)

    def infer(self, tensor: InputTensor) -> Mapping[str, OutputTensor]:
        try:
            outputs = self.gateway.run({self.cfg.input_name: tensor.data})
        except LeafKitError:
            raise
        except Exception as exc:
            raise InferenceError(f"Inference failed: {exc}") from exc
        return outputs

    def __call__(self, image: ImageInput, *, image_id: Optional[str] = None) -> DetectionResult:
        return self.detect(image, image_id=image_id)

    def detect(self, image: ImageInput, *, image_id: Optional[str] = None) -> DetectionResult:
        tag = image_id if image_id is not None else image_identity(image)

        prep = self.preprocess(image)
        outputs = self.infer(prep.tensor)
        _, output = select_output(outputs, self.cfg.output_names)

        candidates = self.interpreter.interpret(output)
        detections = self.filter.apply(candidates)
        logger.info("Image %s: %d detection(s) from %d candidate row(s)", tag[:12], len(detections), len(candidates))
        return DetectionResult(image_id=tag, detections=tuple(detections), layout=candidates.layout)

    def close(self) -> None:
        close = getattr(self.gateway, "close", None)
        if close is not None:
            close()

    def __enter__(self) -> "DetectionPipeline":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


def load_pipeline(
    model_path: PathLike,
    *,
    backend: Optional[str] = None,
    root: Optional[PathLike] = "auto",
    catalog: ClassCatalog = DEFAULT_CATALOG,
    cfg: DetectorConfig = DetectorConfig(),
    onnx_providers: Optional[Sequence[str]] = None,
    torch_device: str = "cpu",
    torch_half: bool = False,
) -> DetectionPipeline:
    """
    Create a pipeline for a model on disk.

        pipe = load_pipeline("models/best.onnx")  # resolves from project root by default

    Args:
        model_path: path to the model file; relative paths resolve against project root by default
        backend: "onnxruntime" / "torchscript", or None to infer from extension
        root: base directory for resolving relative model paths ("auto" uses best-effort project root)
    """

    resolved = resolve_path(model_path, root=root)
    chosen = backend
    if chosen is None:
        suffix = resolved.suffix.lower()
        if suffix == ".onnx":
            chosen = "onnxruntime"
        elif suffix in {".torchscript", ".ts", ".pt"}:
            chosen = "torchscript"
        else:
            raise ValueError(
                f"Could not infer backend from extension '{suffix}'. Pass backend=... explicitly."
            )

    chosen = chosen.lower()
    if chosen == "onnxruntime":
        from .backends.onnxruntime_backend import OnnxRuntimeGateway, OnnxRuntimeGatewayConfig

        ort_gateway = OnnxRuntimeGateway(resolved, OnnxRuntimeGatewayConfig(providers=onnx_providers))
        return DetectionPipeline(ort_gateway, catalog=catalog, cfg=cfg, backend_name="onnxruntime")

    if chosen == "torchscript":
        from .backends.torchscript_backend import TorchScriptGateway, TorchScriptGatewayConfig

        ts_gateway = TorchScriptGateway(resolved, TorchScriptGatewayConfig(device=torch_device, half=torch_half))
        return DetectionPipeline(ts_gateway, catalog=catalog, cfg=cfg, backend_name="torchscript")

    raise ValueError(f"Unsupported backend: {backend!r}")
