"""
Persistence Models — SQLAlchemy tables behind the DAOs
=========================================================
Integer ids everywhere (0 on a domain object means "not yet persisted").
Feature vectors are stored as a count on the sample row plus fixed-width
FeatureTuple rows; see algolab.persistence.codec for the packing rules.

Tables are created by Base.metadata.create_all(engine) at startup.
"""

from datetime import datetime
from sqlalchemy import (
    Column, String, Text, Float, Boolean, Integer,
    DateTime, ForeignKey, Index, UniqueConstraint,
)
from sqlalchemy.orm import relationship
from algolab.core.database import Base


# ═══════════════════════════════════════════════════════════════
# ALGORITHMS
# ═══════════════════════════════════════════════════════════════

class AlgorithmEntity(Base):
    __tablename__ = "algorithms"
    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    alias = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    is_classification_algorithm = Column(Boolean, nullable=False, default=True)
    author_id = Column(Integer, nullable=True, index=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=True, onupdate=datetime.utcnow)

    parameters = relationship(
        "AlgorithmParameterEntity",
        order_by="AlgorithmParameterEntity.id",
        cascade="all, delete-orphan",
    )


class AlgorithmParameterEntity(Base):
    __tablename__ = "algorithm_parameters"
    id = Column(Integer, primary_key=True, autoincrement=True)
    algorithm_id = Column(Integer, ForeignKey("algorithms.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    type = Column(String(20), nullable=False)
    default_value = Column(Text, nullable=True)


# ═══════════════════════════════════════════════════════════════
# SESSIONS + RUN QUEUE
# ═══════════════════════════════════════════════════════════════

class AlgorithmSessionEntity(Base):
    __tablename__ = "algorithm_sessions"
    id = Column(Integer, primary_key=True, autoincrement=True)
    algorithm_id = Column(Integer, ForeignKey("algorithms.id"), nullable=False, index=True)
    data_set_id = Column(Integer, ForeignKey("data_sets.id"), nullable=False, index=True)
    status = Column(String(20), nullable=False, default="queued")
    estimate_alias = Column(String(50), nullable=True)
    estimate_config = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    started_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)

    parameter_values = relationship(
        "AlgorithmParameterValueEntity",
        order_by="AlgorithmParameterValueEntity.id",
        cascade="all, delete-orphan",
    )


class AlgorithmParameterValueEntity(Base):
    __tablename__ = "algorithm_parameter_values"
    id = Column(Integer, primary_key=True, autoincrement=True)
    algorithm_session_id = Column(Integer, ForeignKey("algorithm_sessions.id", ondelete="CASCADE"), nullable=False, index=True)
    algorithm_parameter_id = Column(Integer, nullable=False)
    int_value = Column(Integer, nullable=True)
    double_value = Column(Float, nullable=True)
    string_value = Column(Text, nullable=True)


class RunQueueEntity(Base):
    __tablename__ = "algorithm_run_queue"
    id = Column(Integer, primary_key=True, autoincrement=True)
    algorithm_session_id = Column(Integer, ForeignKey("algorithm_sessions.id"), nullable=False, unique=True)
    enqueued_at = Column(DateTime, default=datetime.utcnow, nullable=False)


# ═══════════════════════════════════════════════════════════════
# DATA SETS + SAMPLES
# ═══════════════════════════════════════════════════════════════

class DataSetEntity(Base):
    __tablename__ = "data_sets"
    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    type = Column(String(30), nullable=False, default="classification")
    description = Column(Text, nullable=True)
    author_id = Column(Integer, nullable=True, index=True)
    created_at = Column(DateTime, default=datetime.utcnow)


class ClassificationSampleEntity(Base):
    __tablename__ = "classification_samples"
    id = Column(Integer, primary_key=True, autoincrement=True)
    data_set_id = Column(Integer, ForeignKey("data_sets.id", ondelete="CASCADE"), nullable=False, index=True)
    label = Column(Integer, nullable=True)
    # NULL count = no feature vector at all; 0 = empty vector
    count = Column(Integer, nullable=True)

    feature_tuples = relationship(
        "FeatureTupleEntity",
        cascade="all, delete-orphan",
        lazy="selectin",
    )


class FeatureTupleEntity(Base):
    """Fixed-width chunk of a feature vector. Width must match codec.CAPACITY."""
    __tablename__ = "feature_tuples"
    id = Column(Integer, primary_key=True, autoincrement=True)
    classification_sample_id = Column(
        Integer, ForeignKey("classification_samples.id", ondelete="CASCADE"), nullable=False,
    )
    order = Column(Integer, nullable=False)
    value_0 = Column(Float, nullable=True)
    value_1 = Column(Float, nullable=True)
    value_2 = Column(Float, nullable=True)
    value_3 = Column(Float, nullable=True)
    value_4 = Column(Float, nullable=True)
    value_5 = Column(Float, nullable=True)
    value_6 = Column(Float, nullable=True)
    value_7 = Column(Float, nullable=True)

    __table_args__ = (
        UniqueConstraint("classification_sample_id", "order", name="uq_feature_tuple_order"),
    )


# ═══════════════════════════════════════════════════════════════
# ESTIMATIONS + RESULTS
# ═══════════════════════════════════════════════════════════════

class EstimationEntity(Base):
    __tablename__ = "estimations"
    id = Column(Integer, primary_key=True, autoincrement=True)
    algorithm_session_id = Column(Integer, ForeignKey("algorithm_sessions.id"), nullable=False, index=True)
    alias = Column(String(50), nullable=False)
    config = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default="running")
    value = Column(Float, nullable=True)
    summary = Column(Text, nullable=True)  # JSON text
    error = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    completed_at = Column(DateTime, nullable=True)


class ClassificationResultEntity(Base):
    __tablename__ = "classification_results"
    id = Column(Integer, primary_key=True, autoincrement=True)
    estimation_id = Column(Integer, ForeignKey("estimations.id", ondelete="CASCADE"), nullable=False)
    classification_sample_id = Column(Integer, nullable=False)
    decision = Column(Integer, nullable=False)
    expected = Column(Integer, nullable=True)
    score = Column(Float, nullable=True)

    __table_args__ = (
        Index("ix_classification_results_estimation", "estimation_id", "id"),
    )
