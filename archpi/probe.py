import logging
import re
from enum import Enum
from pathlib import Path
from typing import Optional

from archpi.utils import CommandRunner, command_exists

logger = logging.getLogger("ArchPI")


class GpuVariant(Enum):
    NVIDIA = "nvidia"
    AMD = "amd"
    INTEL = "intel"
    UNKNOWN = "unknown"


# Vendor patterns in the order they are tried against free-form tool output.
_VENDOR_PATTERNS = (
    (GpuVariant.NVIDIA, re.compile(r"nvidia", re.IGNORECASE)),
    (GpuVariant.AMD, re.compile(r"radeon|amd", re.IGNORECASE)),
    (GpuVariant.INTEL, re.compile(r"intel", re.IGNORECASE)),
)


def match_vendor(text: Optional[str]) -> GpuVariant:
    if not text:
        return GpuVariant.UNKNOWN
    for variant, pattern in _VENDOR_PATTERNS:
        if pattern.search(text):
            return variant
    return GpuVariant.UNKNOWN


class SystemProbe:
    """Hardware and System Detection logic."""

    def __init__(self, runner: CommandRunner, dri_node: Path = Path("/dev/dri/card0")):
        self.runner = runner
        self.dri_node = dri_node

    def _nvidia_smi_ok(self) -> bool:
        return command_exists("nvidia-smi") and self.runner.output(["nvidia-smi"]) is not None

    def module_loaded(self, module: str) -> bool:
        lsmod = self.runner.output(["lsmod"]) or ""
        return any(line.split()[0] == module for line in lsmod.splitlines() if line.strip())

    def _glxinfo(self) -> str:
        if not self.dri_node.exists():
            return ""
        return self.runner.output(["glxinfo"]) or ""

    def detect_hardware_gpu(self) -> GpuVariant:
        """Vendor from a raw PCI bus scan."""
        lspci = self.runner.output(["lspci"]) or ""
        displays = [
            line for line in lspci.splitlines()
            if re.search(r"vga|3d controller|display", line, re.IGNORECASE)
        ]
        variant = match_vendor("\n".join(displays))
        logger.info(f"Hardware GPU detected: {variant.value}")
        return variant

    def resolve_graphics_driver(self) -> GpuVariant:
        """Detect the graphics stack that is actually active.

        Signals are tried in priority order, first match wins:
        nvidia-smi, then OpenGL renderer plus loaded kernel module (amdgpu,
        i915), then the Vulkan summary, and finally the PCI scan. A tool that
        is missing or fails just contributes nothing.
        """
        if self._nvidia_smi_ok():
            logger.info("Active NVIDIA driver detected via nvidia-smi")
            return GpuVariant.NVIDIA

        glx = self._glxinfo()
        if re.search(r"radeon|amdgpu", glx, re.IGNORECASE) and self.module_loaded("amdgpu"):
            logger.info("Active AMDGPU driver detected (amdgpu kernel module loaded)")
            return GpuVariant.AMD
        if re.search(r"intel", glx, re.IGNORECASE) and self.module_loaded("i915"):
            logger.info("Active Intel driver detected (i915 kernel module loaded)")
            return GpuVariant.INTEL

        if command_exists("vulkaninfo"):
            variant = match_vendor(self.runner.output(["vulkaninfo", "--summary"]))
            if variant is not GpuVariant.UNKNOWN:
                logger.info(f"Vulkan reports active {variant.value} driver")
                return variant

        logger.warning("No active graphics driver detected, falling back to hardware detection")
        return self.detect_hardware_gpu()
