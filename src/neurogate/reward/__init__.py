from neurogate.reward.arbiter import RewardArbiter

__all__ = ["RewardArbiter"]
