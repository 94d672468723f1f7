"""Wall calibration and object anchoring engine for mixed-reality measuring."""
