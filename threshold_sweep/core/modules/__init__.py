# Core modules for threshold_sweep
