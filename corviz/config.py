# corviz/config.py
from __future__ import annotations
import os

# 默认阈值；可用环境变量覆盖
R_THRES = float(os.environ.get("CORVIZ_R_THRES", "0.6"))
P_THRES = float(os.environ.get("CORVIZ_P_THRES", "0.05"))
R_ABSOLUTE = os.environ.get("CORVIZ_R_ABSOLUTE", "1").lower() not in ("0", "false", "no")
