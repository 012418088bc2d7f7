"""Answer and citation analysis.

Rule-based steps applied to normalized provider results:
  1. Mention detection & answer-text analysis (brand, competitors, sentiment)
  2. Structural & Ranking Parser
  3. Citation Analyzer (sources, attribution, provider breakdown)
  4. Competitive metrics (share of voice, citation gap, ranking)
  5. Visibility summary

Input:  NormalizedResult list (from the gateway)
Output: CitationAnalysis, CompetitiveMetrics, VisibilitySummary
"""
