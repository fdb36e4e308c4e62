from .adaptation_edges import compute_adaptation_edges
from .depth_analysis import compute_depth_analysis
from .durability_analysis import compute_durability_analysis
from .durable_tss import compute_durable_tss, resolve_ftp_watts
from .moving_averages import compute_moving_average_inputs
from .training_frontiers import clamp_window_days, compute_training_frontiers
