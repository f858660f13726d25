"""ONNX Runtime client for the two-stage SAM2 models."""

import asyncio
import logging
import os
from typing import Any, Dict, List, Mapping

import numpy as np

from ...config.models import SegmentationConfig
from ...errors import InferenceError, ModelLoadError

logger = logging.getLogger(__name__)

# Hardware execution providers, in order of preference
ACCELERATED_PROVIDERS = [
    "TensorrtExecutionProvider",
    "CUDAExecutionProvider",
    "ROCMExecutionProvider",
    "CoreMLExecutionProvider",
    "DmlExecutionProvider",
]
CPU_PROVIDER = "CPUExecutionProvider"


class TensorInferenceClient:
    """Loads encoder/decoder sessions and runs them off the event loop."""

    def __init__(self, config: SegmentationConfig):
        self.config = config

    def probe_acceleration(self) -> bool:
        """True when ONNX Runtime exposes a hardware execution provider."""
        try:
            import onnxruntime as ort
            available = ort.get_available_providers()
        except Exception as e:
            logger.debug("Acceleration probe failed: %s", e)
            return False
        return any(provider in available for provider in ACCELERATED_PROVIDERS)

    def execution_providers(self, use_acceleration: bool) -> List[str]:
        """Accelerated providers first, CPU always last."""
        providers = []
        if use_acceleration:
            try:
                import onnxruntime as ort
                available = ort.get_available_providers()
            except Exception:
                available = []
            providers = [p for p in ACCELERATED_PROVIDERS if p in available]
        providers.append(CPU_PROVIDER)
        return providers

    def artifacts_available(self) -> bool:
        """Lightweight existence check of both model files."""
        return all(
            os.path.isfile(self.config.model_path(kind))
            for kind in ("encoder", "decoder")
        )

    def _create_session(self, kind: str, providers: List[str]) -> Any:
        import onnxruntime as ort

        path = self.config.model_path(kind)
        if not os.path.isfile(path):
            raise ModelLoadError(f"SAM2 {kind} not found at {path}")

        options = ort.SessionOptions()
        options.graph_optimization_level = ort.GraphOptimizationLevel.ORT_ENABLE_ALL
        try:
            session = ort.InferenceSession(path, sess_options=options, providers=providers)
        except Exception as e:
            raise ModelLoadError(f"Failed to load SAM2 {kind} from {path}: {e}") from e

        logger.info("Loaded SAM2 %s from %s (%s)", kind, path, session.get_providers()[0])
        return session

    async def load_model(self, kind: str, providers: List[str] = None) -> Any:
        """Load the 'encoder' or 'decoder' session in a worker thread."""
        if providers is None:
            providers = self.execution_providers(self.config.use_acceleration)
        return await asyncio.to_thread(self._create_session, kind, providers)

    def _run_session(self, handle: Any, inputs: Mapping[str, np.ndarray]) -> Dict[str, np.ndarray]:
        try:
            output_names = [output.name for output in handle.get_outputs()]
            outputs = handle.run(output_names, dict(inputs))
        except Exception as e:
            raise InferenceError(f"Model execution failed: {e}") from e
        return dict(zip(output_names, outputs))

    async def run(self, handle: Any, inputs: Mapping[str, np.ndarray]) -> Dict[str, np.ndarray]:
        """Execute a session; outputs keyed by the model's output names."""
        if handle is None:
            raise InferenceError("No model session to run")
        return await asyncio.to_thread(self._run_session, handle, inputs)

    def release(self, handle: Any) -> None:
        """Drop a session. ONNX Runtime frees it once unreferenced."""
        del handle
