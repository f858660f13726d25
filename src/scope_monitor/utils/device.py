"""Video device enumeration."""

import glob
import json
import logging
import platform
import subprocess
from typing import Any, Dict, List

import cv2

logger = logging.getLogger(__name__)


def _macos_camera_names() -> Dict[int, str]:
    try:
        result = subprocess.run(
            ['system_profiler', 'SPCameraDataType', '-json'],
            capture_output=True,
            text=True,
            timeout=5
        )
    except (OSError, subprocess.SubprocessError) as e:
        logger.debug("system_profiler unavailable: %s", e)
        return {}
    if result.returncode != 0:
        return {}
    try:
        cameras = json.loads(result.stdout).get('SPCameraDataType', [])
    except ValueError:
        return {}
    return {idx: cam.get('_name', f'Camera {idx}') for idx, cam in enumerate(cameras)}


def enumerate_video_devices(verbose: bool = False, max_index: int = 5) -> List[Dict[str, Any]]:
    """Enumerate available video capture devices."""
    devices = []
    camera_names = _macos_camera_names() if platform.system() == 'Darwin' else {}

    # Suppress OpenCV warnings during enumeration
    if not verbose:
        cv2.setLogLevel(0)

    for index in range(max_index):
        cap = cv2.VideoCapture(index)
        if cap.isOpened():
            devices.append({
                'index': index,
                'type': 'local_camera',
                'resolution': f"{int(cap.get(cv2.CAP_PROP_FRAME_WIDTH))}x{int(cap.get(cv2.CAP_PROP_FRAME_HEIGHT))}",
                'fps': int(cap.get(cv2.CAP_PROP_FPS)),
                'backend': cap.getBackendName(),
                'name': camera_names.get(index, f'Camera {index}')
            })
        cap.release()

    # On Linux, check /dev/video* devices
    if platform.system() == 'Linux':
        for dev in sorted(glob.glob('/dev/video*')):
            cap = cv2.VideoCapture(dev)
            if cap.isOpened():
                devices.append({
                    'path': dev,
                    'type': 'v4l2_device',
                    'backend': 'V4L2',
                    'name': dev
                })
            cap.release()

    # Restore OpenCV logging
    if not verbose:
        cv2.setLogLevel(3)

    return devices


def print_device_list(devices: List[Dict[str, Any]]) -> None:
    """Print formatted device list."""
    print("\n=== Available Video Devices ===")
    if not devices:
        print("No video devices found.")
    else:
        for i, dev in enumerate(devices, 1):
            print(f"\n{i}. {dev.get('type', 'unknown').upper()}")
            for key, value in dev.items():
                if key != 'type':
                    print(f"   {key}: {value}")
    print()
