from jobpipeline.models.posting import JobPosting
from jobpipeline.models.preferences import Company, JobPreference

__all__ = ["JobPosting", "JobPreference", "Company"]
