from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence, Tuple, Union

import numpy as np


PathLike = Union[str, Path]


@dataclass(frozen=True)
class OnnxRuntimeBackendConfig:
    """
    Configuration for ONNX Runtime inference.

    - providers: ORT execution providers (e.g., ["CUDAExecutionProvider", "CPUExecutionProvider"])
    - input_name: override the auto-selected input name
    - output_name/proto_output_name: override the detection and prototype outputs
      (default: first and second model outputs)
    """

    providers: Optional[Sequence[str]] = None
    input_name: Optional[str] = None
    output_name: Optional[str] = None
    proto_output_name: Optional[str] = None


class OnnxRuntimeBackend:
    """
    ONNX Runtime backend for YOLOv8-seg style speech bubble models.

    Expects an NCHW float32 blob shaped (1, 3, S, S) and returns
    (detections, prototypes). Prototypes are None for detection-only exports.
    """

    def __init__(self, model_path: PathLike, cfg: OnnxRuntimeBackendConfig = OnnxRuntimeBackendConfig()):
        try:
            import onnxruntime as ort  # type: ignore
        except Exception as e:  # pragma: no cover
            raise ImportError(
                "onnxruntime is required for the ONNX backend. Install it with `pip install onnxruntime` "
                "(or `onnxruntime-gpu`)."
            ) from e

        self._ort = ort
        self.model_path = Path(model_path)
        if not self.model_path.exists():
            raise FileNotFoundError(str(self.model_path))

        sess_opts = ort.SessionOptions()
        sess_opts.graph_optimization_level = ort.GraphOptimizationLevel.ORT_ENABLE_ALL
        providers = list(cfg.providers) if cfg.providers is not None else None
        self.session = ort.InferenceSession(str(self.model_path), sess_options=sess_opts, providers=providers)

        outputs = self.session.get_outputs()
        self.input_name = cfg.input_name or self.session.get_inputs()[0].name
        self.output_name = cfg.output_name or outputs[0].name
        if cfg.proto_output_name is not None:
            self.proto_output_name: Optional[str] = cfg.proto_output_name
        else:
            self.proto_output_name = outputs[1].name if len(outputs) > 1 else None

    @property
    def providers_in_use(self) -> Sequence[str]:
        return tuple(self.session.get_providers())

    def infer(self, blob: np.ndarray) -> Tuple[np.ndarray, Optional[np.ndarray]]:
        names = [self.output_name]
        if self.proto_output_name is not None:
            names.append(self.proto_output_name)
        outputs = self.session.run(names, {self.input_name: blob})
        protos = outputs[1] if len(outputs) > 1 else None
        return outputs[0], protos
