from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from jobtrack.core.models.job import JobStatus, JobType


class CreateJobRequest(BaseModel):
    jobType: JobType
    jobData: Optional[Dict[str, Any]] = None

    @classmethod
    def for_input(cls, input_text: str, job_type: JobType = JobType.ENCODE) -> "CreateJobRequest":
        return cls(jobType=job_type, jobData={"Input": input_text})


class CreateJobResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    jobId: str = Field(min_length=1)


class JobStatusResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    jobStatus: JobStatus


class CancelJobResponse(BaseModel):
    model_config = ConfigDict(extra="allow")

    jobId: Optional[str] = None
    message: Optional[str] = None
