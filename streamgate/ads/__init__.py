"""Ad-exposure policy."""

from streamgate.ads.policy import AdExposurePolicy, should_show_ads

__all__ = ["AdExposurePolicy", "should_show_ads"]
