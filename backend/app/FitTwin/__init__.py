"""
FitTwin module: body measurement reconstruction from calibrated photo pairs.
"""
