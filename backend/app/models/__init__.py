from app.models.job import (  # noqa: F401
    AudioArtifact,
    FailedItem,
    InvalidStatusTransitionError,
    Job,
    JobOutputs,
    JobStatus,
    QualityMode,
    Question,
    VideoArtifact,
)
