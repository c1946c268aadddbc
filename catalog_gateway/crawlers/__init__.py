"""카탈로그 소스별 크롤러 (legacy: 브라우저 스크래핑, ycl: JSON API)"""
