"""
Local Qwen2.5-VL capability:
- bf16 precision
- Accelerate device_map="auto" with explicit max_memory (GPU cap + CPU offload)
- Attention implementation set via model config (sdpa / flash_attention_2 / eager)
- OOM guard with clean CPU fallback
- Weights load lazily on first call; generation runs in a worker thread
"""

from __future__ import annotations
import asyncio
import logging
import os
import threading
from dataclasses import dataclass
from typing import Type

from pydantic import BaseModel

from ..core.errors import CapabilityError
from .capability import RawOutput, RenderedPrompt, parse_json_safely, schema_instructions
from .images import load_image

logger = logging.getLogger(__name__)


@dataclass
class QwenConfig:
    model_id: str
    device: str          # "auto" | "cpu" | "cuda"
    max_new_tokens: int
    temperature: float
    top_p: float
    # memory / offload
    offload_folder: str
    gpu_max_gb: float
    cpu_max_gb: float
    attn_impl: str       # "sdpa", "flash_attention_2", "eager"


def _normalize_model_id(mid: str) -> str:
    mid = (mid or "").strip()
    if not mid:
        return "Qwen/Qwen2.5-VL-3B-Instruct"
    if "/" not in mid:
        return "Qwen/" + mid
    return mid


def _max_memory_map(torch, gpu_gb: float, cpu_gb: float) -> dict:
    mm = {"cpu": f"{int(cpu_gb)}GiB"}
    if torch.cuda.is_available() and torch.cuda.device_count() > 0:
        mm[0] = f"{int(gpu_gb)}GiB"   # integer GPU key
    return mm


class QwenCapability:
    def __init__(self, cfg: QwenConfig):
        self.cfg = cfg
        self._lock = threading.Lock()
        self.processor = None
        self.model = None
        self._device = None

    @classmethod
    def from_settings(cls, s) -> "QwenCapability":
        return cls(QwenConfig(
            model_id=s.qwen_model_id,
            device=s.qwen_device,
            max_new_tokens=s.qwen_max_new_tokens,
            temperature=s.qwen_temperature,
            top_p=s.qwen_top_p,
            offload_folder=str(s.qwen_offload_folder),
            gpu_max_gb=float(s.qwen_gpu_max_gb),
            cpu_max_gb=float(s.qwen_cpu_max_gb),
            attn_impl=s.qwen_attn_impl,
        ))

    def _load(self) -> None:
        """
        Load Qwen with offload and stable attention config. Called once, under the lock.
        """
        # allocator hint before torch import
        os.environ.setdefault("PYTORCH_CUDA_ALLOC_CONF", "expandable_segments:True")
        import torch
        from transformers import AutoConfig, AutoModelForImageTextToText, AutoProcessor

        model_id = _normalize_model_id(self.cfg.model_id)
        dtype = torch.bfloat16
        logger.info("Loading %s (device=%s)", model_id, self.cfg.device)

        self.processor = AutoProcessor.from_pretrained(model_id, trust_remote_code=True, use_fast=True)
        config = AutoConfig.from_pretrained(model_id, trust_remote_code=True)
        # not all models expose this; setting it is harmless when absent
        setattr(config, "attn_implementation", self.cfg.attn_impl)

        offload_dir = str(self.cfg.offload_folder)
        os.makedirs(offload_dir, exist_ok=True)

        def _cpu_load():
            return AutoModelForImageTextToText.from_pretrained(
                model_id,
                config=config,
                torch_dtype=dtype,
                device_map={"": "cpu"},
                offload_folder=offload_dir,
                trust_remote_code=True,
            ).eval()

        force_cpu = (self.cfg.device == "cpu") or (not torch.cuda.is_available())
        if force_cpu:
            self.model = _cpu_load()
            self._device = torch.device("cpu")
            return
        try:
            self.model = AutoModelForImageTextToText.from_pretrained(
                model_id,
                config=config,
                torch_dtype=dtype,
                device_map="auto",
                max_memory=_max_memory_map(torch, self.cfg.gpu_max_gb, self.cfg.cpu_max_gb),
                offload_folder=offload_dir,
                trust_remote_code=True,
            ).eval()
            self._device = next(self.model.parameters()).device
        except RuntimeError:
            logger.warning("GPU load of %s failed; falling back to CPU", model_id)
            self.model = _cpu_load()
            self._device = torch.device("cpu")

    def _ensure_loaded(self) -> None:
        with self._lock:
            if self.model is None:
                self._load()

    def _generate_sync(self, prompt: RenderedPrompt, output_model: Type[BaseModel]) -> str:
        self._ensure_loaded()
        import torch

        images = [load_image(ref) for ref in prompt.images]
        content = [{"type": "image"} for _ in images]
        content.append({"type": "text", "text": f"{prompt.text}\n\n{schema_instructions(output_model)}"})
        messages = [{"role": "user", "content": content}]

        chat_text = self.processor.apply_chat_template(messages, add_generation_prompt=True)
        inputs = self.processor(
            images=images or None,
            text=chat_text,
            return_tensors="pt",
            padding=True,
        )
        for k, v in inputs.items():
            if hasattr(v, "to"):
                inputs[k] = v.to(self._device)

        sample = self.cfg.temperature > 0
        with torch.no_grad():
            gen = self.model.generate(
                **inputs,
                max_new_tokens=self.cfg.max_new_tokens,
                do_sample=sample,
                temperature=self.cfg.temperature if sample else None,
                top_p=self.cfg.top_p if sample else None,
            )

        # Decode only continuation
        in_ids = inputs.get("input_ids")
        gen_ids = gen[:, in_ids.shape[1]:] if in_ids is not None else gen
        out = self.processor.batch_decode(gen_ids, skip_special_tokens=True)
        return (out[0] if out else "").strip()

    async def generate(self, prompt: RenderedPrompt, output_model: Type[BaseModel]) -> RawOutput:
        try:
            text = await asyncio.to_thread(self._generate_sync, prompt, output_model)
        except CapabilityError:
            raise
        except Exception as e:
            raise CapabilityError(f"{prompt.name}: local generation failed: {e!r}") from e

        if not text:
            raise CapabilityError(f"{prompt.name}: empty response from {self.cfg.model_id}")
        data = parse_json_safely(text)
        return data if data is not None else text
