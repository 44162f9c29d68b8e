from voxcast.schema.jobs import Job, JobProviderRequest

__all__ = ["Job", "JobProviderRequest"]
