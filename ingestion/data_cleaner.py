"""Data cleaning and validation for incoming draw rows."""

import re
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import List, Dict, Any, Optional, Tuple

from models.domain import DrawEvent
from analysis.timeline import parse_draw_date, normalize_slot, normalize_country
from utils.helpers import coerce_int

logger = logging.getLogger(__name__)


@dataclass
class ValidationResult:
    """Result of data validation."""
    is_valid: bool
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    cleaned_data: Optional[DrawEvent] = None


class DataCleaner:
    """Clean and validate raw draw rows before they reach the store."""

    def __init__(self, today: Optional[date] = None):
        self.today = today or date.today()
        self.validation_rules = self._setup_validation_rules()

    def _setup_validation_rules(self) -> Dict[str, Any]:
        return {
            'number_range': {'min': 0, 'max': 99},
            'required_fields': ['fecha', 'horario', 'pais', 'numero'],
            'date_range': {
                'min_date': date(2000, 1, 1),
                'max_date': self.today + timedelta(days=1),
            },
        }

    def clean_text_data(self, text: Any) -> str:
        if not isinstance(text, str):
            return ""
        return re.sub(r'\s+', ' ', text.strip())

    def validate_row(self, row: Dict[str, Any]) -> ValidationResult:
        """Validate a single raw row."""
        errors = []
        warnings = []

        for name in self.validation_rules['required_fields']:
            value = row.get(name)
            if name == 'horario' and value is None:
                value = row.get('turno')
            if value is None or (isinstance(value, str) and not value.strip()):
                errors.append(f"Missing {name}")
        if errors:
            return ValidationResult(is_valid=False, errors=errors, warnings=warnings)

        fecha = parse_draw_date(row['fecha'])
        if fecha is None:
            errors.append(f"Invalid fecha: {row['fecha']}")
        else:
            if fecha < self.validation_rules['date_range']['min_date']:
                errors.append(f"Date too old: {fecha.isoformat()}")
            if fecha > self.validation_rules['date_range']['max_date']:
                errors.append(f"Date too recent: {fecha.isoformat()}")

        horario = normalize_slot(row.get('horario', row.get('turno')))
        if horario is None:
            errors.append(f"Invalid horario: {row.get('horario', row.get('turno'))}")

        pais = normalize_country(self.clean_text_data(row['pais']))
        if pais is None:
            errors.append("Invalid pais")

        numero = coerce_int(row['numero'])
        limits = self.validation_rules['number_range']
        if numero is None:
            errors.append(f"Invalid numero: {row['numero']}")
        elif not limits['min'] <= numero <= limits['max']:
            errors.append(f"Number {numero} out of range")
        elif isinstance(row['numero'], str) and len(row['numero'].strip()) == 1:
            warnings.append(f"Single digit numero padded: {numero:02d}")

        if errors:
            return ValidationResult(is_valid=False, errors=errors, warnings=warnings)

        is_test = row.get('is_test', False)
        if isinstance(is_test, str):
            is_test = is_test.strip().lower() in ('1', 'true', 'yes', 'si', 'sí')
        if is_test:
            warnings.append("Test draw")

        return ValidationResult(
            is_valid=True,
            errors=errors,
            warnings=warnings,
            cleaned_data=DrawEvent(
                numero=numero,
                fecha=fecha,
                horario=horario,
                pais=pais,
                is_test=bool(is_test),
            ),
        )

    def clean_batch(self, rows: List[Dict[str, Any]]) -> Tuple[List[DrawEvent], List[ValidationResult]]:
        """Validate a batch, dropping invalid rows and in-batch duplicates."""
        cleaned: List[DrawEvent] = []
        validations: List[ValidationResult] = []
        seen = set()

        logger.info(f"Cleaning batch of {len(rows)} rows")
        for row in rows:
            validation = self.validate_row(row)
            if validation.is_valid:
                draw = validation.cleaned_data
                key = (draw.fecha, draw.pais_key, draw.horario, draw.numero)
                if key in seen:
                    validation.warnings.append("Duplicate row in batch")
                    validation.cleaned_data = None
                else:
                    seen.add(key)
                    cleaned.append(draw)
            else:
                logger.debug(f"Invalid row {row!r}: {validation.errors}")
            validations.append(validation)

        logger.info(f"Cleaned batch: {len(cleaned)} valid rows")
        return cleaned, validations

    def generate_quality_report(self, validations: List[ValidationResult]) -> Dict[str, Any]:
        """Generate data quality report."""
        total = len(validations)
        valid = sum(1 for v in validations if v.is_valid)
        error_counts: Dict[str, int] = {}
        warning_counts: Dict[str, int] = {}
        for validation in validations:
            for error in validation.errors:
                error_counts[error] = error_counts.get(error, 0) + 1
            for warning in validation.warnings:
                warning_counts[warning] = warning_counts.get(warning, 0) + 1

        return {
            'timestamp': datetime.now().isoformat(),
            'total_results': total,
            'valid_results': valid,
            'invalid_results': total - valid,
            'success_rate': valid / total if total > 0 else 0,
            'error_summary': error_counts,
            'warning_summary': warning_counts,
            'top_errors': sorted(error_counts.items(), key=lambda x: x[1], reverse=True)[:5],
            'top_warnings': sorted(warning_counts.items(), key=lambda x: x[1], reverse=True)[:5],
        }


def clean_draw_rows(rows: List[Dict[str, Any]]) -> Tuple[List[DrawEvent], Dict[str, Any]]:
    """Clean rows and return valid draws with a quality report."""
    cleaner = DataCleaner()
    cleaned, validations = cleaner.clean_batch(rows)
    return cleaned, cleaner.generate_quality_report(validations)
