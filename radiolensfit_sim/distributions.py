"""
Default galaxy shape and size distributions.

e_pdf is the disc-galaxy ellipticity prior fitted to CFHTLenS
(Miller et al. 2013), defined on [0, E_MAX]. The scalelength distribution is
p(r) ~ r * exp(-(r/a)^(4/3)), whose cumulative form is a regularized
incomplete gamma function with shape 3/2.
"""

import math

E_MAX = 0.804

# Ellipticity prior parameters
E_NORM = 2.43180252985281
E_A = 0.2539
E_0 = 0.0256

SCALELENGTH_ALPHA = 4.0 / 3.0


def e_pdf(e: float) -> float:
    """Probability density of the ellipticity modulus |e|."""
    if e <= 0.0 or e >= E_MAX:
        return 0.0
    return E_NORM * e * (1.0 - math.exp((e - E_MAX) / E_A)) / ((1.0 + e) * math.sqrt(e * e + E_0 * E_0))


def scalelength_pdf(scale: float, r: float) -> float:
    """Normalised scalelength density for scale parameter a."""
    if r <= 0.0:
        return 0.0
    t = (r / scale) ** SCALELENGTH_ALPHA
    # r * exp(-t) normalised by a^2 * Gamma(3/2) / alpha
    norm = scale * scale * math.gamma(2.0 / SCALELENGTH_ALPHA) / SCALELENGTH_ALPHA
    return r * math.exp(-t) / norm


def scalelength_cdf(scale: float, r: float) -> float:
    """
    Cumulative scalelength distribution P(R <= r) for scale parameter a.

    Closed form of P(3/2, t) with t = (r/a)^(4/3):
    erf(sqrt(t)) - 2 sqrt(t/pi) exp(-t).
    """
    if scale <= 0.0:
        raise ValueError(f"scale must be positive, got: {scale}")
    if r <= 0.0:
        return 0.0
    t = (r / scale) ** SCALELENGTH_ALPHA
    root = math.sqrt(t)
    return math.erf(root) - 2.0 * root * math.exp(-t) / math.sqrt(math.pi)
