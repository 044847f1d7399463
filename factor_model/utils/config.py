"""
configuration file for the factor model

This centralizes the factor weights, metric definitions and backtest settings.
Makes it easy to change the scoring model later on without changing the main code
"""

# the following code sets the weights for the factors, it must add up to 1
FACTOR_WEIGHTS = {
    'Growth': 0.30,  # is the company actually growing
    'Quality': 0.30,  # returns on capital, margins, balance sheet
    'Valuation': 0.30,  # how cheap is the stock
    'Momentum': 0.10  # trailing price performance
}

# metric definitions for each factor
# 'weight' is how much of the factor weight each metric carries
# 'lower_is_better' is True for metrics where a lower value is better (like a P/E ratio)

METRICS = {
    'Growth': {
        'rev1yr': {
            'weight': 0.06,
            'lower_is_better': False,
            'display_name': 'Revenue 1Y Growth %',
            'description': '1-year revenue growth'
        },
        'rev3yr': {
            'weight': 0.06,
            'lower_is_better': False,
            'display_name': 'Revenue 3Y CAGR %',
            'description': '3-year revenue CAGR'
        },
        'ebitda3y': {
            'weight': 0.06,
            'lower_is_better': False,
            'display_name': 'EBITDA 3Y CAGR %',
            'description': '3-year EBITDA CAGR'
        },
        'eps1yr': {
            'weight': 0.06,
            'lower_is_better': False,
            'display_name': 'EPS 1Y Growth %',
            'description': '1-year EPS growth'
        },
        'eps3yr': {
            'weight': 0.06,
            'lower_is_better': False,
            'display_name': 'EPS 3Y CAGR %',
            'description': '3-year EPS CAGR'
        }
    },
    'Quality': {
        'roce': {
            'weight': 0.06,
            'lower_is_better': False,
            'display_name': 'ROCE %',
            'description': 'Return on capital employed'
        },
        'roe': {
            'weight': 0.06,
            'lower_is_better': False,
            'display_name': 'ROE %',
            'description': 'Return on equity'
        },
        'ebit_margin': {
            'weight': 0.06,
            'lower_is_better': False,
            'display_name': 'EBIT Margin %',
            'description': 'EBIT as % of revenue'
        },
        'de': {
            'weight': 0.06,
            'lower_is_better': True,
            'display_name': 'Debt/Equity',
            'description': 'Total debt / Shareholder equity'
        },
        'ccc': {
            'weight': 0.06,
            'lower_is_better': True,
            'display_name': 'Cash Conversion Cycle',
            'description': 'Days in cash conversion cycle'
        }
    },
    'Valuation': {
        'pe': {
            'weight': 0.06,
            'lower_is_better': True,
            'display_name': 'P/E Ratio',
            'description': 'Price to earnings'
        },
        'evebitda': {
            'weight': 0.06,
            'lower_is_better': True,
            'display_name': 'EV/EBITDA',
            'description': 'Enterprise value to EBITDA'
        },
        'pfcfs': {
            'weight': 0.06,
            'lower_is_better': True,
            'display_name': 'P/FCF',
            'description': 'Price to free cash flow'
        },
        'pocfs': {
            'weight': 0.06,
            'lower_is_better': True,
            'display_name': 'P/OCF',
            'description': 'Price to operating cash flow'
        },
        'peg': {
            'weight': 0.06,
            'lower_is_better': True,
            'display_name': 'PEG Ratio',
            'description': 'P/E relative to growth'
        }
    },
    'Momentum': {
        'price_return': {
            'weight': 0.10,
            'lower_is_better': False,
            'display_name': 'Price Return %',
            'description': 'Annual price return'
        }
    }
}

# market cap cut-offs, same currency unit as the market cap itself
SIZE_BUCKETS = {
    'Large': 200_000_000_000,
    'Mid': 50_000_000_000
}

# score shown for every valid entity when a cohort cannot be scaled
NEUTRAL_SCORE = 50

BACKTEST_DEFAULTS = {
    'top_n': 20,
    'min_top_n': 5,
    'max_top_n': 50,
    'start_year': 2011,
    'benchmark_name': 'NIFTY50',
    'risk_free_rate': 6.0,  # percent per year
    'growth_base': 100.0  # cumulative series start value
}

SCREENER_DEFAULTS = {
    'page_size': 50,
    'max_page_size': 200
}

DEFAULT_DB_PATH = "data/factor_model.db"
