from typing import Dict, List, Any, Optional
import pandas as pd
from dataclasses import asdict
from datetime import datetime
import json

from .. import __version__
from ..core.models import EntityType
from ..seo.indexability import check_indexability
from .validation import EntityValidator


class ContentQualityReport:
    """Content and SEO quality report for one entity graph"""

    def __init__(self, graph, validator: Optional[EntityValidator] = None):
        self.graph = graph
        self.validator = validator or EntityValidator(asdict(graph.thresholds))
        self.report_timestamp = datetime.now()
        self.sections = {}

    def add_section(self, name: str, content: Dict[str, Any]):
        """Add a section to the report"""
        self.sections[name] = content

    def indexability_frame(self) -> pd.DataFrame:
        """One row per entity with its gate decision"""
        rows = []
        for entity_type in EntityType:
            for entity in self.graph.entities(entity_type):
                result = check_indexability(entity, self.graph.thresholds)
                rows.append({
                    'entity_type': entity_type.value,
                    'slug': entity.slug,
                    'should_index': result.should_index,
                    'reason': result.reason.value,
                    'confidence': result.confidence,
                })
        return pd.DataFrame(rows, columns=['entity_type', 'slug', 'should_index', 'reason', 'confidence'])

    def generate_validation_summary(self) -> Dict[str, Any]:
        entities = [e for entity_type in EntityType for e in self.graph.entities(entity_type)]
        results = self.validator.validate_batch(entities)
        total = results['total']
        return {
            'overview': {
                'total_entities_validated': total,
                'valid_entities': results['valid'],
                'invalid_entities': results['invalid'],
                'entities_with_warnings': results['warnings'],
                'validation_pass_rate': (results['valid'] / total * 100) if total > 0 else 0,
            },
            'common_errors': dict(sorted(results['error_counts'].items())),
            'common_warnings': dict(sorted(results['warning_counts'].items())),
        }

    def generate_integrity_summary(self) -> Dict[str, Any]:
        integrity = self.graph.integrity
        return {
            'warning_count': len(integrity.warnings),
            'excluded_count': len(integrity.excluded),
            'by_code': dict(sorted(integrity.count_by_code().items())),
        }

    def generate_indexability_summary(self, frame: Optional[pd.DataFrame] = None) -> Dict[str, Any]:
        frame = self.indexability_frame() if frame is None else frame
        if frame.empty:
            return {'status': 'No entities in graph'}

        by_type = frame.groupby('entity_type', sort=True)['should_index'].agg(['sum', 'count'])
        reasons = frame.groupby(['entity_type', 'reason'], sort=True).size()
        summary = {
            'indexable_share': float(frame['should_index'].mean() * 100),
            'by_type': {
                str(entity_type): {'indexable': int(row['sum']), 'total': int(row['count'])}
                for entity_type, row in by_type.iterrows()
            },
            'reasons': {},
        }
        for (entity_type, reason), count in reasons.items():
            summary['reasons'].setdefault(str(entity_type), {})[str(reason)] = int(count)
        return summary

    def generate_content_gaps(self) -> Dict[str, List[str]]:
        """Slugs of pages that are thin or blocked by missing data"""
        thresholds = self.graph.thresholds
        return {
            'strains_without_description': sorted(
                s.slug for s in self.graph.strains.values() if not s.description),
            'strains_without_products': sorted(
                s.slug for s in self.graph.strains.values() if not s.product_ids),
            'products_without_offers': sorted(
                p.slug for p in self.graph.products.values() if not p.active_offers),
            'cities_below_density': sorted(
                c.slug for c in self.graph.cities.values()
                if c.pharmacy_count < thresholds.min_city_pharmacies
                and c.offer_count < thresholds.min_city_offers),
            'pharmacies_without_coordinates': sorted(
                p.slug for p in self.graph.pharmacies.values() if p.address.coordinates is None),
        }

    def generate_full_report(self) -> Dict[str, Any]:
        """Generate complete content quality report"""
        self.add_section('Report Metadata', {
            'generated_at': self.report_timestamp.isoformat(),
            'engine_version': __version__,
        })
        self.add_section('Graph Summary', self.graph.stats.to_dict())

        validation = self.generate_validation_summary()
        self.add_section('Validation Summary', validation)
        self.add_section('Integrity Summary', self.generate_integrity_summary())

        indexability = self.generate_indexability_summary()
        self.add_section('Indexability Summary', indexability)

        gaps = self.generate_content_gaps()
        self.add_section('Content Gaps', gaps)

        component_scores = {
            'validation': validation['overview']['validation_pass_rate'],
            'indexability': indexability.get('indexable_share', 0.0),
        }
        quality_score = sum(component_scores.values()) / len(component_scores)
        self.add_section('Content Quality Metrics', {
            'overall_content_quality_score': quality_score,
            'component_scores': component_scores,
        })

        return {
            'report': self.sections,
            'summary': {
                'overall_quality_score': quality_score,
                'total_entities': validation['overview']['total_entities_validated'],
                'integrity_warnings': len(self.graph.integrity.warnings),
                'report_generated': self.report_timestamp.isoformat(),
            },
        }

    def export_report(self, report: Dict[str, Any], format: str = 'json') -> str:
        """Export report in specified format"""
        if format == 'json':
            return json.dumps(report, indent=2, default=str)
        elif format == 'markdown':
            return self._generate_markdown_report(report)
        else:
            raise ValueError(f"Unsupported format: {format}")

    def _generate_markdown_report(self, report: Dict[str, Any]) -> str:
        md_lines = []

        md_lines.append("# Cannabis pSEO - Content Quality Report")
        md_lines.append(f"\nGenerated: {report['summary']['report_generated']}")
        md_lines.append("\n## Executive Summary")
        md_lines.append(f"\n- **Overall Content Quality Score**: {report['summary']['overall_quality_score']:.1f}%")
        md_lines.append(f"- **Entities Validated**: {report['summary']['total_entities']}")
        md_lines.append(f"- **Integrity Warnings**: {report['summary']['integrity_warnings']}")

        for section_name, content in report['report'].items():
            md_lines.append(f"\n## {section_name}")
            for key, value in content.items():
                if isinstance(value, dict):
                    md_lines.append(f"\n### {key}")
                    for sub_key, sub_value in value.items():
                        md_lines.append(f"- {sub_key}: {sub_value}")
                elif isinstance(value, list):
                    md_lines.append(f"\n### {key}")
                    md_lines.extend(f"- {item}" for item in value)
                else:
                    md_lines.append(f"- **{key}**: {value}")

        return '\n'.join(md_lines)
