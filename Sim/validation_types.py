# -*- coding: utf-8 -*-
"""
Shared validation data types for reporting structural model problems
"""

from typing import Dict, List, Any, Optional
from dataclasses import dataclass, field
from enum import Enum

# ===============================================================================
# Core Validation Enums
# ===============================================================================

class ValidationSeverity(Enum):
    """Issue severity levels"""
    WARNING = "warning"
    ERROR = "error"

class ValidationCategory(Enum):
    """Validation category types, one per structural rule"""
    STRUCTURE = "structure"
    FLOW_COMPATIBILITY = "flow_compatibility"
    MISSING_FORMULA = "missing_formula"
    CIRCULAR_DEPENDENCY = "circular_dependency"
    PARAMETER_USAGE = "parameter_usage"

# ===============================================================================
# Core Validation Data Structures
# ===============================================================================

@dataclass
class ValidationIssue:
    """Single validation problem, tied to the offending node when there is one"""
    severity: ValidationSeverity
    category: ValidationCategory
    message: str
    suggestion: str
    error_type: Optional[str] = None    # exception class the raising validator uses
    element_name: Optional[str] = None
    element_type: Optional[str] = None  # 'level', 'rate', 'constant', ...
    node: Any = field(default=None, repr=False, compare=False)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization"""
        return {
            'severity': self.severity.value,
            'category': self.category.value,
            'message': self.message,
            'suggestion': self.suggestion,
            'error_type': self.error_type,
            'element_name': self.element_name,
            'element_type': self.element_type,
        }

@dataclass
class ValidationReport:
    """Every problem found in a model, in validation order"""
    is_valid: bool = True
    issues: List[ValidationIssue] = field(default_factory=list)

    def add_issue(self, issue: ValidationIssue):
        """Add validation issue and update validity"""
        self.issues.append(issue)
        if issue.severity == ValidationSeverity.ERROR:
            self.is_valid = False

    def get_issues_by_severity(self, severity: ValidationSeverity) -> List[ValidationIssue]:
        return [issue for issue in self.issues if issue.severity == severity]

    def get_issues_by_category(self, category: ValidationCategory) -> List[ValidationIssue]:
        return [issue for issue in self.issues if issue.category == category]

    @property
    def errors(self) -> List[ValidationIssue]:
        return self.get_issues_by_severity(ValidationSeverity.ERROR)

    @property
    def warnings(self) -> List[ValidationIssue]:
        return self.get_issues_by_severity(ValidationSeverity.WARNING)

    @property
    def error_count(self) -> int:
        return len(self.errors)

    @property
    def warning_count(self) -> int:
        return len(self.warnings)

    @property
    def total_issues(self) -> int:
        return len(self.issues)

    def to_dict(self) -> Dict[str, Any]:
        """Convert report to dictionary for serialization"""
        return {
            'is_valid': self.is_valid,
            'summary': {
                'total_issues': self.total_issues,
                'error_count': self.error_count,
                'warning_count': self.warning_count,
            },
            'issues': [issue.to_dict() for issue in self.issues],
        }
