import copy
import os
import sys

import pytest

os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
sys.path.append(os.path.abspath("."))

# 1000x1000 photos, head_top -> feet_center spans 900px: 180cm subject at 0.2 cm/px.
FRONT_LANDMARKS = {
    "head_top": {"x": 0.5, "y": 0.05},
    "neck_base": {"x": 0.5, "y": 0.15},
    "shoulder_left": {"x": 0.39, "y": 0.2},
    "shoulder_right": {"x": 0.61, "y": 0.2},
    "elbow_left": {"x": 0.36, "y": 0.36},
    "elbow_right": {"x": 0.64, "y": 0.36},
    "wrist_left": {"x": 0.35, "y": 0.5},
    "wrist_right": {"x": 0.65, "y": 0.5},
    "waist_left": {"x": 0.42, "y": 0.4},
    "waist_right": {"x": 0.58, "y": 0.4},
    "hip_left": {"x": 0.41, "y": 0.5},
    "hip_right": {"x": 0.59, "y": 0.5},
    "knee_left": {"x": 0.44, "y": 0.72},
    "knee_right": {"x": 0.56, "y": 0.72},
    "ankle_left": {"x": 0.45, "y": 0.92},
    "ankle_right": {"x": 0.55, "y": 0.92},
    "feet_center": {"x": 0.5, "y": 0.95},
}

SIDE_LANDMARKS = {
    "neck_point": {"x": 0.47, "y": 0.15},
    "back_spine": {"x": 0.53, "y": 0.17},
    "chest_front": {"x": 0.43, "y": 0.27},
    "chest_back": {"x": 0.57, "y": 0.27},
    "waist_front": {"x": 0.44, "y": 0.4},
    "waist_back": {"x": 0.56, "y": 0.4},
    "hip_front": {"x": 0.43, "y": 0.5},
    "hip_back": {"x": 0.57, "y": 0.5},
    "knee": {"x": 0.5, "y": 0.72},
    "ankle": {"x": 0.5, "y": 0.92},
}


@pytest.fixture
def vision_payload():
    return {
        "height_cm": 180,
        "landmarks_front": copy.deepcopy(FRONT_LANDMARKS),
        "landmarks_side": copy.deepcopy(SIDE_LANDMARKS),
        "image": {
            "front": {"width": 1000, "height": 1000},
            "side": {"width": 1000, "height": 1000},
        },
        "confidence": 87,
        "notes": "subject standing straight",
    }
