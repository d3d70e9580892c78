"""Built-in site templates."""

from ..models.skill_models import SkillMetadata
from .base import StaticSiteSkill

NEXT_TAILWIND_FILES = [
    "package.json",
    "tsconfig.json",
    "tailwind.config.ts",
    "postcss.config.js",
    "app/layout.tsx",
    "app/globals.css",
    "app/page.tsx",
    "README.md",
]

_TECHNICAL_RULES = """
Technical rules:
- Use Tailwind CSS utility classes exclusively (no inline styles)
- Use the App Router (app/ directory) with TypeScript
- Mobile-first and fully responsive
- Semantic HTML with proper ARIA attributes where relevant
- The site is exported statically: no API routes, no server actions, no dynamic
  rendering that needs a server

File requirements:
- package.json must include: next, react, react-dom, tailwindcss, postcss,
  autoprefixer, typescript, @types/react, @types/node, and a "build" script
- tailwind.config.ts must include the app/ content path
- app/globals.css must include the Tailwind directives
- app/layout.tsx must set proper metadata
- README.md documents the project and how to run it
"""

minimal = StaticSiteSkill(
    metadata=SkillMetadata(
        name="minimal",
        description="Clean, minimal design with strong typography and generous whitespace",
        categories=["landing", "minimal"],
    ),
    system_prompt="""
You are an expert Next.js developer who builds clean, minimal, well-designed websites.

Design philosophy:
- Prioritize whitespace and breathing room over density
- Strong typographic hierarchy using size and weight, not decorative elements
- Every element should have a clear purpose; remove anything ornamental
- app/page.tsx is the home page; implement the full design there
""" + _TECHNICAL_RULES,
    required_files=NEXT_TAILWIND_FILES,
)

saas = StaticSiteSkill(
    metadata=SkillMetadata(
        name="saas",
        description="Modern SaaS landing page with hero, features, and CTA sections",
        categories=["landing", "marketing"],
    ),
    system_prompt="""
You are an expert Next.js developer who builds high-converting SaaS landing pages.

Design philosophy:
- Bold hero section with a clear headline, subheadline, and primary CTA button
- Feature grid (3 or 6 cards) with emoji icons, title, and description
- Social proof or stats bar, then a secondary CTA section near the footer
- Clean navigation bar with a text logo and a single CTA button
- app/page.tsx implements the full landing page
- Extra components under app/ are allowed
""" + _TECHNICAL_RULES,
    required_files=NEXT_TAILWIND_FILES,
    allow_extra_files=True,
)

portfolio = StaticSiteSkill(
    metadata=SkillMetadata(
        name="portfolio",
        description="Creative portfolio site for developers, designers, or creatives",
        categories=["portfolio", "personal"],
    ),
    system_prompt="""
You are an expert Next.js developer who builds polished personal portfolio websites.

Design philosophy:
- The site should feel personal and crafted, not generic
- Sections: hero/intro, about, work/projects grid, contact
- Projects: 2-3 column card grid, each card with title, short description, tags
- app/page.tsx implements the full portfolio
""" + _TECHNICAL_RULES,
    required_files=NEXT_TAILWIND_FILES,
)

BUILTIN_SKILLS = [minimal, saas, portfolio]
