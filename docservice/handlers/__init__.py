"""
A query is a dict of filtering conditions mixed with special `$`-directives:

```javascript
{
  name: 'Kevin',  // filter: name = 'Kevin'
  age: { $gte: 18 },  // filter: age >= 18
  $select: 'id name',  // only load these fields
  $populate: 'articles title',  // load the related articles, with their titles
  $sort: '-createdAt',  // newest first
  $skip: 10,  // skip first 10 documents
  $limit: 100,  // load 100 documents at most
}
```

Every directive is implemented by a handler: see the relevant module for the detailed syntax.
"""

from .filter import FilterHandler, \
    FilterExpressionBase, FilterBooleanExpression, FilterColumnExpression, FilterReferencedCollectionExpression
from .select import SelectHandler
from .populate import PopulateHandler, PopulatePath
from .sort import SortHandler
from .limit import SkipHandler, LimitHandler
